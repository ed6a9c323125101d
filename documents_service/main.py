from datetime import datetime, timezone
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from database import AsyncSessionLocal, create_db_and_tables
from errors import register_exception_handlers
from file_registry import get_file_registry
from routers import items as items_router
from routers import upload as upload_router
from logging_config import get_logger
from config import settings
from schemas import HealthStatus
import services
import seed

logger = get_logger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Documents Service starting up...")
    await create_db_and_tables()
    logger.info("Database tables created or already exist.")
    settings.UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    logger.info(f"Upload directory configured at: {settings.UPLOAD_DIR}")
    logger.info(f"Maximum upload size: {settings.MAX_UPLOAD_SIZE_BYTES} bytes")

    async with AsyncSessionLocal() as session:
        if settings.SEED_ON_STARTUP:
            await seed.seed_sample_data(session)
        if settings.RECONCILE_ON_STARTUP:
            await services.reconcile_storage(session, get_file_registry(), settings.UPLOAD_DIR)
    yield
    logger.info("Documents Service shutting down...")

app = FastAPI(
    title="Documents Service",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(items_router.router)
app.include_router(upload_router.router)

@app.get("/health", response_model=HealthStatus, tags=["Health"])
async def health():
    return HealthStatus(status="ok", timestamp=datetime.now(timezone.utc))

@app.get("/", tags=["Root"])
async def read_root():
    return {"message": "Welcome to the Documents Service API"}

if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Documents Service on {settings.HOST}:{settings.PORT}")
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, reload=True)
