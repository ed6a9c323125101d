"""Side-store mapping uploaded documents to their bytes on disk.

The registry is one JSON object kept next to the uploaded files::

    {"<item id>": {"originalName": "...", "storedName": "...", "path": "..."}}

It is written independently of the items table, so callers order their
writes and compensate on failure; ``services.reconcile_storage`` repairs any
drift left behind by a crash.
"""
import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import aiofiles
import aiofiles.os

from config import settings as global_app_settings
from logging_config import get_logger

logger = get_logger(__name__)

registry_store: Dict[Path, "FileRegistry"] = {}

@dataclass(frozen=True)
class FileRegistryEntry:
    item_id: str
    original_name: str
    stored_name: str
    path: str

    def to_record(self) -> dict:
        return {"originalName": self.original_name, "storedName": self.stored_name, "path": self.path}

    @classmethod
    def from_record(cls, item_id: str, record: dict) -> "FileRegistryEntry":
        return cls(
            item_id=item_id,
            original_name=record.get("originalName", ""),
            stored_name=record.get("storedName", ""),
            path=record.get("path", ""),
        )

class FileRegistry:
    def __init__(self, registry_path: Path):
        self.registry_path = Path(registry_path)
        self._lock = asyncio.Lock()

    async def _load(self) -> Dict[str, dict]:
        if not await aiofiles.os.path.exists(self.registry_path):
            return {}
        async with aiofiles.open(self.registry_path, "r", encoding="utf-8") as f:
            raw = await f.read()
        if not raw.strip():
            return {}
        return json.loads(raw)

    async def _save(self, records: Dict[str, dict]):
        self.registry_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.registry_path.with_name(self.registry_path.name + ".tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(records, indent=2))
        await aiofiles.os.replace(tmp_path, self.registry_path)

    async def put(self, item_id: str, original_name: str, stored_name: str, path: str) -> FileRegistryEntry:
        entry = FileRegistryEntry(item_id, original_name, stored_name, str(path))
        async with self._lock:
            records = await self._load()
            records[item_id] = entry.to_record()
            await self._save(records)
        logger.debug(f"Registered file for item {item_id} at {path}")
        return entry

    async def get(self, item_id: str) -> Optional[FileRegistryEntry]:
        records = await self._load()
        record = records.get(item_id)
        if record is None:
            return None
        return FileRegistryEntry.from_record(item_id, record)

    async def entries(self) -> List[FileRegistryEntry]:
        records = await self._load()
        return [FileRegistryEntry.from_record(item_id, record) for item_id, record in records.items()]

    async def remove(self, item_id: str) -> Optional[FileRegistryEntry]:
        """Drop the entry for ``item_id`` and unlink its file.

        A missing entry or an already deleted file is not an error.
        """
        async with self._lock:
            records = await self._load()
            record = records.pop(item_id, None)
            if record is None:
                return None
            entry = FileRegistryEntry.from_record(item_id, record)
            if entry.path and await aiofiles.os.path.exists(entry.path):
                await aiofiles.os.remove(entry.path)
                logger.debug(f"Removed stored file {entry.path} for item {item_id}")
            else:
                logger.warning(f"Stored file for item {item_id} was already missing: {entry.path}")
            await self._save(records)
        return entry

def get_file_registry() -> FileRegistry:
    path = global_app_settings.file_registry_path
    if path not in registry_store:
        registry_store[path] = FileRegistry(path)
    return registry_store[path]
