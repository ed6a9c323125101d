"""Request-level operations on the item tree.

Each operation validates its input, talks to the items table through
``crud`` and, for uploaded content, keeps the file registry in step with it.
The two stores share no transaction: uploads write the file, then the
registry entry, then the row, and undo the first two if anything later fails.
"""
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from fastapi import UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

import crud
import errors
import storage
from config import Settings
from file_registry import FileRegistry
from logging_config import get_logger
from models import Item, ItemType
from schemas import DocumentCreate, FolderCreate

logger = get_logger(__name__)

DEFAULT_MEDIA_TYPE = "application/octet-stream"

@dataclass
class DeleteResult:
    item_type: ItemType
    deleted_count: int

    @property
    def message(self) -> str:
        label = "Folder" if self.item_type == ItemType.FOLDER else "Document"
        return f"{label} deleted successfully"

@dataclass
class DownloadTarget:
    path: Path
    filename: str
    media_type: str

@dataclass
class ReconcileReport:
    removed_entries: List[str] = field(default_factory=list)
    removed_files: List[str] = field(default_factory=list)

async def list_items(
    db: AsyncSession,
    parent_id: Optional[str] = None,
    q: Optional[str] = None,
    item_type: Optional[ItemType] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[Item]:
    return await crud.list_children(
        db,
        parent_id=parent_id or None,
        item_type=item_type,
        name_contains=q or None,
        limit=limit,
        offset=offset,
    )

async def get_item(db: AsyncSession, item_id: str) -> Item:
    item = await crud.get_item_by_id(db, item_id)
    if item is None:
        raise errors.NotFound("Item not found")
    return item

async def create_folder(db: AsyncSession, payload: FolderCreate) -> Item:
    folder = Item.new_folder(
        name=payload.name,
        created_by=payload.created_by,
        parent_id=payload.parent_id or None,
    )
    folder = await crud.create_item(db, folder)
    logger.info(f"Created folder '{folder.name}' (ID: {folder.id}) under {folder.parent_id or 'root'}")
    return folder

async def create_document(db: AsyncSession, payload: DocumentCreate) -> Item:
    document = Item.new_document(
        name=payload.name,
        created_by=payload.created_by,
        parent_id=payload.parent_id or None,
        file_size_bytes=payload.file_size_bytes,
    )
    document = await crud.create_item(db, document)
    logger.info(f"Created document record '{document.name}' (ID: {document.id}) under {document.parent_id or 'root'}")
    return document

def _resolve_creator(created_by: Optional[str], current_settings: Settings) -> str:
    creator = (created_by or "").strip() or current_settings.ANONYMOUS_CREATOR
    if not creator:
        raise errors.ValidationFailed(details={"createdBy": "createdBy is required"})
    if len(creator) > 255:
        raise errors.ValidationFailed(details={"createdBy": "String should have at most 255 characters"})
    return creator

def _resolve_name(name: Optional[str], original_name: str) -> str:
    item_name = (name or "").strip() or original_name.strip()
    if not item_name:
        raise errors.ValidationFailed(details={"name": "String should have at least 1 character"})
    if len(item_name) > 255:
        raise errors.ValidationFailed(details={"name": "String should have at most 255 characters"})
    return item_name

async def _undo_upload(registry: FileRegistry, item_id: Optional[str], stored: storage.StoredFile):
    try:
        if item_id is not None:
            await registry.remove(item_id)
        if await storage.discard(stored.path):
            logger.info(f"Cleaned up rejected upload at {stored.path}")
    except Exception:
        logger.exception(f"Cleanup of upload at {stored.path} failed")

async def upload_document(
    db: AsyncSession,
    registry: FileRegistry,
    upload: Optional[UploadFile],
    current_settings: Settings,
    name: Optional[str] = None,
    parent_id: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Item:
    if upload is None or not upload.filename:
        raise errors.NoFile()

    original_name = upload.filename
    stored = await storage.save_upload(upload, current_settings.UPLOAD_DIR, current_settings.MAX_UPLOAD_SIZE_BYTES)
    parent_id = parent_id or None
    registered_id = None
    try:
        item_name = _resolve_name(name, original_name)
        creator = _resolve_creator(created_by, current_settings)
        await crud.resolve_parent_folder(db, parent_id)

        existing = await crud.find_by_scope_and_name(db, parent_id, ItemType.DOCUMENT, item_name)
        if existing is not None:
            logger.info(f"Upload '{original_name}' rejected: document '{item_name}' already exists under {parent_id or 'root'}")
            raise errors.DuplicateName("A document with this name already exists in this location")

        item_id = str(uuid.uuid4())
        await registry.put(item_id, original_name, stored.stored_name, str(stored.path))
        registered_id = item_id

        extension = Path(original_name).suffix[1:] or None
        document = Item.new_document(
            name=item_name,
            created_by=creator,
            parent_id=parent_id,
            file_size_bytes=stored.size_bytes,
            mime_type=upload.content_type,
            extension=extension,
            item_id=item_id,
        )
        db.add(document)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise errors.translate_integrity_error(e) from e
        await db.refresh(document)
    except Exception:
        await _undo_upload(registry, registered_id, stored)
        raise

    logger.info(f"Uploaded '{original_name}' as document '{document.name}' (ID: {document.id}, {document.file_size_bytes} bytes)")
    return document

async def open_download(db: AsyncSession, registry: FileRegistry, item_id: str) -> DownloadTarget:
    item = await crud.get_item_by_id(db, item_id)
    if item is None:
        raise errors.NotFound("Document not found")
    if item.is_folder:
        raise errors.InvalidType("Cannot download a folder")

    entry = await registry.get(item_id)
    if entry is None:
        logger.warning(f"No file record for document {item_id}")
        raise errors.FileNotFound("File record not found")

    path = Path(entry.path)
    if not path.is_file():
        logger.error(f"File for document {item_id} registered at {path} but missing on disk")
        raise errors.FileNotFound("File not found on disk")

    return DownloadTarget(path=path, filename=entry.original_name, media_type=item.mime_type or DEFAULT_MEDIA_TYPE)

async def _delete_tree(db: AsyncSession, registry: FileRegistry, root_id: str) -> int:
    nodes = await crud.list_subtree(db, root_id)
    deleted = 0
    try:
        for node in nodes:
            if not node.is_folder:
                await registry.remove(node.id)
            deleted += await crud.delete_item(db, node.id, commit=False)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return deleted

async def delete_item(db: AsyncSession, registry: FileRegistry, item_id: str) -> DeleteResult:
    item = await crud.get_item_by_id(db, item_id)
    if item is None:
        raise errors.NotFound("Item not found")
    item_type = item.type

    if item.is_folder:
        try:
            if await crud.count_children(db, item_id) == 0:
                deleted = await crud.delete_item(db, item_id)
            else:
                deleted = await _delete_tree(db, registry, item_id)
        except IntegrityError as e:
            # A child was added under the folder after its subtree was read.
            await db.rollback()
            logger.warning(f"Delete of folder {item_id} hit a new child: {e.orig}")
            raise errors.Conflict("Folder contents changed during delete, retry the request") from e
    else:
        await registry.remove(item_id)
        deleted = await crud.delete_item(db, item_id)

    logger.info(f"Deleted {item_type.value.lower()} {item_id} ({deleted} item(s) removed)")
    return DeleteResult(item_type=item_type, deleted_count=deleted)

async def reconcile_storage(db: AsyncSession, registry: FileRegistry, upload_dir: Path) -> ReconcileReport:
    """Repair drift between the items table, the registry and the upload dir.

    Registry entries whose item is gone (or is not a document) are removed
    along with their file; files nobody references are deleted.
    """
    report = ReconcileReport()
    for entry in await registry.entries():
        item = await crud.get_item_by_id(db, entry.item_id)
        if item is None or item.is_folder:
            logger.warning(f"Removing stale file record for {entry.item_id} ({entry.path})")
            await registry.remove(entry.item_id)
            report.removed_entries.append(entry.item_id)

    upload_dir = Path(upload_dir)
    if upload_dir.is_dir():
        referenced = {Path(entry.path).name for entry in await registry.entries()}
        for path in upload_dir.iterdir():
            if not path.is_file() or path.name.startswith("."):
                continue
            if path.name not in referenced:
                logger.warning(f"Removing orphaned upload {path}")
                await storage.discard(path)
                report.removed_files.append(path.name)

    logger.info(
        f"Storage reconciliation finished: {len(report.removed_entries)} stale record(s), "
        f"{len(report.removed_files)} orphaned file(s) removed"
    )
    return report
