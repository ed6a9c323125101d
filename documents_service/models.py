import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, String, BigInteger, DateTime, Enum, ForeignKey, Index, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()

class ItemType(str, enum.Enum):
    FOLDER = "FOLDER"
    DOCUMENT = "DOCUMENT"

def _new_id() -> str:
    return str(uuid.uuid4())

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

class Item(Base):
    """A node of the folder/document tree.

    Folders and documents share one table; only documents carry file
    metadata. Build rows through ``new_folder`` / ``new_document``.
    """
    __tablename__ = "items"

    id = Column(String(36), primary_key=True, default=_new_id)
    type = Column(Enum(ItemType, native_enum=False, length=16), nullable=False)
    name = Column(String(255), nullable=False)
    parent_id = Column(String(36), ForeignKey("items.id"), nullable=True, index=True)
    created_by = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    file_size_bytes = Column(BigInteger, nullable=True)
    mime_type = Column(String(255), nullable=True)
    extension = Column(String(32), nullable=True)

    # NULL parents compare distinct in a plain unique index, so the root
    # scope is folded into '' for uniqueness purposes.
    __table_args__ = (
        Index(
            "uq_items_scope_type_name",
            func.coalesce(parent_id, ""),
            type,
            name,
            unique=True,
        ),
    )

    @classmethod
    def new_folder(cls, name: str, created_by: str, parent_id: Optional[str] = None) -> "Item":
        return cls(
            id=_new_id(),
            type=ItemType.FOLDER,
            name=name,
            parent_id=parent_id,
            created_by=created_by,
        )

    @classmethod
    def new_document(
        cls,
        name: str,
        created_by: str,
        parent_id: Optional[str] = None,
        file_size_bytes: Optional[int] = None,
        mime_type: Optional[str] = None,
        extension: Optional[str] = None,
        item_id: Optional[str] = None,
    ) -> "Item":
        return cls(
            id=item_id or _new_id(),
            type=ItemType.DOCUMENT,
            name=name,
            parent_id=parent_id,
            created_by=created_by,
            file_size_bytes=file_size_bytes,
            mime_type=mime_type,
            extension=extension,
        )

    @property
    def is_folder(self) -> bool:
        return self.type == ItemType.FOLDER

    def __repr__(self):
        return f"<Item(id={self.id}, type={self.type.value if self.type else None}, name='{self.name}')>"
