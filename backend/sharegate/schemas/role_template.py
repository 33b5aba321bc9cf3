import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class RoleTemplateRead(BaseModel):
    id: uuid.UUID | str
    role: str
    permissions: list[str]
    category: str
    description: str | None = None
    is_default: bool
    role_category: str
    updated_by_id: uuid.UUID | None = None
    updated_at: datetime | None = None


class RoleTemplateUpsert(BaseModel):
    permissions: list[str] = Field(default_factory=list, max_length=200)
    category: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
