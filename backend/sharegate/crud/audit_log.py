import uuid
from typing import Any

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.ports.audit import AuditLogData, AuditLogFilter, AuditLogStore
from ..models.audit_log import AuditLog

_GROUPABLE_COLUMNS = {
    "action": AuditLog.action,
    "entity_type": AuditLog.entity_type,
    "actor_id": AuditLog.actor_id,
}


def _conditions(filters: AuditLogFilter) -> list:
    conditions = []
    if filters.actor_id is not None:
        conditions.append(AuditLog.actor_id == filters.actor_id)
    if filters.action is not None:
        conditions.append(AuditLog.action == filters.action)
    if filters.entity_type is not None:
        conditions.append(AuditLog.entity_type == filters.entity_type)
    if filters.entity_id is not None:
        conditions.append(AuditLog.entity_id == filters.entity_id)
    if filters.from_date is not None:
        conditions.append(AuditLog.created_at >= filters.from_date)
    if filters.to_date is not None:
        conditions.append(AuditLog.created_at <= filters.to_date)
    return conditions


class AuditLogRepository(AuditLogStore):
    def __init__(self, session: AsyncSession):
        self.session = session

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
        audit_log = AuditLog(
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            metadata_=metadata,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.session.add(audit_log)
        await self.session.flush()
        return audit_log

    async def list_filtered(
        self,
        filters: AuditLogFilter,
        *,
        offset: int,
        limit: int,
        descending: bool = True,
    ) -> tuple[list[AuditLogData], int]:
        conditions = _conditions(filters)
        query = select(AuditLog)
        count_query = select(func.count()).select_from(AuditLog)
        if conditions:
            query = query.where(and_(*conditions))
            count_query = count_query.where(and_(*conditions))

        order = AuditLog.created_at.desc() if descending else AuditLog.created_at.asc()
        query = query.order_by(order).limit(limit).offset(offset)

        total = await self.session.scalar(count_query)
        result = await self.session.execute(query)
        return list(result.scalars().all()), int(total or 0)

    async def count(self, filters: AuditLogFilter) -> int:
        query = select(func.count()).select_from(AuditLog)
        conditions = _conditions(filters)
        if conditions:
            query = query.where(and_(*conditions))
        return int(await self.session.scalar(query) or 0)

    async def count_by(
        self, column: str, filters: AuditLogFilter, *, limit: int
    ) -> list[tuple[Any, int]]:
        try:
            group_column = _GROUPABLE_COLUMNS[column]
        except KeyError as exc:
            raise ValueError(f"Cannot group audit logs by '{column}'") from exc

        hits = func.count().label("hits")
        query = select(group_column, hits)
        conditions = _conditions(filters)
        if conditions:
            query = query.where(and_(*conditions))
        query = query.group_by(group_column).order_by(hits.desc()).limit(limit)

        result = await self.session.execute(query)
        return [(value, int(count)) for value, count in result.all()]

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
