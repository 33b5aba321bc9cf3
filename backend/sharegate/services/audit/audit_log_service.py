import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ...auth.permissions import Permission
from ...domain.ports.audit import AuditLogData, AuditLogFilter, AuditLogStore
from ...errors import ValidationError
from ...models.audit_log import AuditAction
from ..admin.permission_service import PermissionResolver

MAX_PAGE_SIZE = 100
TOP_STATS_LIMIT = 10


@dataclass
class AuditLogPage:
    items: list[AuditLogData]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


@dataclass
class AuditLogStats:
    total: int
    top_actions: list[tuple[str, int]] = field(default_factory=list)
    top_entity_types: list[tuple[str, int]] = field(default_factory=list)
    top_actors: list[tuple[Any, int]] = field(default_factory=list)


def _validate_paging(page: int, limit: int) -> None:
    if page < 1:
        raise ValidationError("page must be greater than or equal to 1")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")


class AuditLogService:
    """Read side of the audit trail, restricted to audit viewers."""

    def __init__(self, store: AuditLogStore, resolver: PermissionResolver) -> None:
        self._store = store
        self._resolver = resolver

    async def list_logs(
        self,
        actor_id: uuid.UUID,
        filters: AuditLogFilter,
        *,
        page: int = 1,
        limit: int = 50,
    ) -> AuditLogPage:
        await self._resolver.require_permission(actor_id, Permission.ADMIN_VIEW_AUDIT_LOGS)
        _validate_paging(page, limit)
        if (
            filters.from_date is not None
            and filters.to_date is not None
            and filters.from_date > filters.to_date
        ):
            raise ValidationError("from_date must not be after to_date")

        items, total = await self._store.list_filtered(
            filters, offset=(page - 1) * limit, limit=limit
        )
        return AuditLogPage(items=items, total=total, page=page, limit=limit)

    async def entity_logs(
        self,
        actor_id: uuid.UUID,
        entity_type: str,
        entity_id: str,
        *,
        page: int = 1,
        limit: int = 50,
    ) -> AuditLogPage:
        await self._resolver.require_permission(actor_id, Permission.ADMIN_VIEW_AUDIT_LOGS)
        _validate_paging(page, limit)
        items, total = await self._store.list_filtered(
            AuditLogFilter(entity_type=entity_type, entity_id=entity_id),
            offset=(page - 1) * limit,
            limit=limit,
        )
        return AuditLogPage(items=items, total=total, page=page, limit=limit)

    async def log_stats(
        self,
        actor_id: uuid.UUID,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> AuditLogStats:
        await self._resolver.require_permission(actor_id, Permission.ADMIN_VIEW_AUDIT_LOGS)
        filters = AuditLogFilter(from_date=start, to_date=end)
        return AuditLogStats(
            total=await self._store.count(filters),
            top_actions=await self._store.count_by("action", filters, limit=TOP_STATS_LIMIT),
            top_entity_types=await self._store.count_by(
                "entity_type", filters, limit=TOP_STATS_LIMIT
            ),
            top_actors=await self._store.count_by("actor_id", filters, limit=TOP_STATS_LIMIT),
        )

    async def available_actions(self, actor_id: uuid.UUID) -> list[str]:
        """Action names that can be passed as the ``action`` filter."""
        await self._resolver.require_permission(actor_id, Permission.ADMIN_VIEW_AUDIT_LOGS)
        return [action.value for action in AuditAction]
