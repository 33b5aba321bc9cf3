from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncContextManager, Callable, Protocol


class AuditLogData(Protocol):
    id: uuid.UUID
    actor_id: uuid.UUID | None
    action: str
    entity_type: str | None
    entity_id: str | None
    metadata_: dict[str, Any] | None
    ip_address: str | None
    user_agent: str | None
    created_at: datetime


@dataclass(frozen=True)
class AuditLogFilter:
    actor_id: uuid.UUID | None = None
    action: str | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None


class AuditLogStore(Protocol):
    async def append(
        self,
        *,
        actor_id: uuid.UUID | None,
        action: str,
        entity_type: str | None,
        entity_id: str | None,
        metadata: dict[str, Any] | None,
        ip_address: str | None,
        user_agent: str | None,
    ) -> AuditLogData:
        ...

    async def list_filtered(
        self,
        filters: AuditLogFilter,
        *,
        offset: int,
        limit: int,
        descending: bool = True,
    ) -> tuple[list[AuditLogData], int]:
        ...

    async def count(self, filters: AuditLogFilter) -> int:
        ...

    async def count_by(
        self, column: str, filters: AuditLogFilter, *, limit: int
    ) -> list[tuple[Any, int]]:
        """Group counts by "action", "entity_type" or "actor_id", largest first."""
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...


# Audit writes run in their own unit of work, isolated from the business one.
AuditLogStoreFactory = Callable[[], AsyncContextManager[AuditLogStore]]
