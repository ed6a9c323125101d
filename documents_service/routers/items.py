from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

import schemas
import services
from database import get_db
from file_registry import FileRegistry, get_file_registry
from logging_config import get_logger
from models import ItemType

logger = get_logger(__name__)

router = APIRouter(
    prefix="/items",
    tags=["items"],
)

@router.get("", response_model=List[schemas.ItemPublic])
async def list_items(
    parent_id: Optional[str] = Query(None, alias="parentId"),
    q: Optional[str] = Query(None),
    item_type: Optional[ItemType] = Query(None, alias="type"),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    logger.info(f"List request: parentId={parent_id}, q={q}, type={item_type}")
    return await services.list_items(db, parent_id=parent_id, q=q, item_type=item_type, limit=limit, offset=offset)

@router.get("/{item_id}", response_model=schemas.ItemPublic)
async def get_item(item_id: str, db: AsyncSession = Depends(get_db)):
    return await services.get_item(db, item_id)

@router.post("/folders", response_model=schemas.ItemPublic, status_code=201)
async def create_folder(payload: schemas.FolderCreate, db: AsyncSession = Depends(get_db)):
    logger.info(f"Create folder request: name='{payload.name}', parentId={payload.parent_id}")
    return await services.create_folder(db, payload)

@router.post("/documents", response_model=schemas.ItemPublic, status_code=201)
async def create_document(payload: schemas.DocumentCreate, db: AsyncSession = Depends(get_db)):
    logger.info(f"Create document request: name='{payload.name}', parentId={payload.parent_id}")
    return await services.create_document(db, payload)

@router.delete("/{item_id}", response_model=schemas.DeleteResponse)
async def delete_item(
    item_id: str,
    db: AsyncSession = Depends(get_db),
    registry: FileRegistry = Depends(get_file_registry),
):
    logger.info(f"Delete request for item {item_id}")
    result = await services.delete_item(db, registry, item_id)
    return schemas.DeleteResponse(success=True, message=result.message, deleted_count=result.deleted_count)
