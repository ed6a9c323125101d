"""Writing uploaded bytes to the local upload directory."""
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import aiofiles
import aiofiles.os
from fastapi import UploadFile

import errors
from logging_config import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024

@dataclass
class StoredFile:
    stored_name: str
    path: Path
    size_bytes: int

async def save_upload(upload: UploadFile, upload_dir: Path, max_bytes: int) -> StoredFile:
    """Stream ``upload`` to a fresh file under ``upload_dir``.

    The stored name is a random UUID plus the original extension, so two
    uploads of the same filename never collide on disk.
    """
    upload_dir = Path(upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    stored_name = f"{uuid.uuid4()}{Path(upload.filename or '').suffix}"
    path = upload_dir / stored_name

    size = 0
    too_large = False
    logger.info(f"Saving upload '{upload.filename}' to {path}")
    try:
        async with aiofiles.open(path, "wb") as out_file:
            while chunk := await upload.read(CHUNK_SIZE):
                size += len(chunk)
                if size > max_bytes:
                    too_large = True
                    break
                await out_file.write(chunk)
    except Exception:
        logger.exception(f"Error saving upload '{upload.filename}' to {path}")
        await discard(path)
        raise
    finally:
        await upload.close()

    if too_large:
        await discard(path)
        logger.warning(f"Upload '{upload.filename}' rejected: larger than {max_bytes} bytes")
        raise errors.FileTooLarge(f"File exceeds the maximum upload size of {max_bytes} bytes")

    return StoredFile(stored_name=stored_name, path=path, size_bytes=size)

async def discard(path: Union[str, Path]) -> bool:
    """Best-effort unlink. Returns False when there was nothing to delete."""
    if path and await aiofiles.os.path.exists(path):
        await aiofiles.os.remove(path)
        return True
    return False
