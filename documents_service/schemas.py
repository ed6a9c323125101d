from datetime import datetime
from typing import Annotated, Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

from models import ItemType

ItemName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
CreatorName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class FolderCreate(CamelModel):
    name: ItemName
    parent_id: Optional[str] = None
    created_by: CreatorName

class DocumentCreate(FolderCreate):
    file_size_bytes: Optional[int] = Field(None, ge=0)

class ItemPublic(CamelModel):
    id: str
    type: ItemType
    name: str
    parent_id: Optional[str] = None
    created_by: str
    created_at: datetime
    updated_at: datetime
    file_size_bytes: Optional[int] = None
    mime_type: Optional[str] = None
    extension: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

class DeleteResponse(CamelModel):
    success: bool = True
    message: str
    deleted_count: int

class ErrorResponse(BaseModel):
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None

class HealthStatus(BaseModel):
    status: str = "ok"
    timestamp: datetime
