import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class AuditLogResponse(BaseModel):
    id: uuid.UUID
    actor_id: uuid.UUID | None
    action: str
    entity_type: str | None
    entity_id: str | None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="metadata_")
    ip_address: str | None
    user_agent: str | None
    created_at: datetime

    class Config:
        from_attributes = True
        populate_by_name = True


class AuditLogList(BaseModel):
    items: list[AuditLogResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class RankedCount(BaseModel):
    value: str | None
    count: int


class AuditLogStatsRead(BaseModel):
    total: int
    top_actions: list[RankedCount]
    top_entity_types: list[RankedCount]
    top_actors: list[RankedCount]
