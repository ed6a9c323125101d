"""Sample tree for local development.

Run ``python seed.py`` against an empty database, or set
``SEED_ON_STARTUP=true``. Nothing is inserted when items already exist.
"""
import asyncio

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from logging_config import get_logger
from models import Item

logger = get_logger(__name__)

PDF = "application/pdf"
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PPTX = "application/vnd.openxmlformats-officedocument.presentationml.presentation"
DOC = "application/msword"

async def seed_sample_data(db: AsyncSession) -> int:
    existing = (await db.execute(select(func.count()).select_from(Item))).scalar_one()
    if existing > 0:
        logger.info("Database already seeded. Skipping...")
        return 0

    finance = Item.new_folder("Finance", "John Smith")
    hr = Item.new_folder("Human Resources", "Emily Chen")
    marketing = Item.new_folder("Marketing", "Michael Brown")
    tax = Item.new_folder("Tax Documents", "John Smith", parent_id=finance.id)

    items = [
        finance,
        hr,
        marketing,
        tax,
        Item.new_document("Q4 Financial Report", "John Smith", finance.id, 2457600, PDF, "pdf"),
        Item.new_document("Budget Template 2024", "Sarah Wilson", finance.id, 102400, XLSX, "xlsx"),
        Item.new_document("Tax Filing 2023", "John Smith", tax.id, 512000, PDF, "pdf"),
        Item.new_document("Employee Handbook", "Emily Chen", hr.id, 1048576, PDF, "pdf"),
        Item.new_document("Leave Policy", "Emily Chen", hr.id, 51200, DOC, "doc"),
        Item.new_document("Brand Guidelines", "Michael Brown", marketing.id, 8388608, PDF, "pdf"),
        Item.new_document("Social Media Calendar", "Lisa Anderson", marketing.id, 204800, XLSX, "xlsx"),
        Item.new_document("Company Overview", "Admin", None, 1536000, PDF, "pdf"),
        Item.new_document("Org Chart", "Admin", None, 256000, PPTX, "pptx"),
    ]
    # Parents are flushed first so the foreign keys resolve in order.
    for item in items:
        db.add(item)
        await db.flush()
    await db.commit()
    logger.info(f"Database seeded with {len(items)} items.")
    return len(items)

async def main():
    from database import AsyncSessionLocal, create_db_and_tables, engine

    await create_db_and_tables()
    async with AsyncSessionLocal() as session:
        await seed_sample_data(session)
    await engine.dispose()

if __name__ == "__main__":
    asyncio.run(main())
