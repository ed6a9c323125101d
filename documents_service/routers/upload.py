from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

import schemas
import services
from config import settings as global_app_settings, Settings
from database import get_db
from file_registry import FileRegistry, get_file_registry
from logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/upload",
    tags=["upload"],
)

def get_settings():
    return global_app_settings

def content_disposition(filename: str) -> str:
    """Attachment header with a quoted ASCII ``filename`` and the exact UTF-8 ``filename*``."""
    fallback = filename.encode("ascii", "replace").decode("ascii")
    fallback = "".join(c if c.isprintable() else "_" for c in fallback)
    fallback = fallback.replace("\\", "\\\\").replace('"', '\\"')
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"

@router.post("", response_model=schemas.ItemPublic, status_code=201)
async def upload_file(
    file: Optional[UploadFile] = File(None),
    name: Optional[str] = Form(None),
    parent_id: Optional[str] = Form(None, alias="parentId"),
    created_by: Optional[str] = Form(None, alias="createdBy"),
    db: AsyncSession = Depends(get_db),
    registry: FileRegistry = Depends(get_file_registry),
    current_settings: Settings = Depends(get_settings),
):
    logger.info(f"Upload request for filename: '{file.filename if file else None}', parentId={parent_id}")
    return await services.upload_document(
        db,
        registry,
        file,
        current_settings,
        name=name,
        parent_id=parent_id,
        created_by=created_by,
    )

@router.get("/{item_id}/download")
async def download_file(
    item_id: str,
    db: AsyncSession = Depends(get_db),
    registry: FileRegistry = Depends(get_file_registry),
):
    logger.info(f"Download request for item {item_id}")
    target = await services.open_download(db, registry, item_id)
    return FileResponse(
        path=target.path,
        media_type=target.media_type,
        headers={"content-disposition": content_disposition(target.filename)},
    )
