from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_audit_log_service, get_current_user
from ..domain.ports.audit import AuditLogFilter
from ..domain.ports.users import UserData
from ..schemas.audit_log import AuditLogList, AuditLogResponse, AuditLogStatsRead, RankedCount
from ..services.audit.audit_log_service import AuditLogPage, AuditLogService

router = APIRouter(prefix="/admin/audit-logs", tags=["admin-audit-logs"])


def _page(page: AuditLogPage) -> AuditLogList:
    return AuditLogList(
        items=[AuditLogResponse.model_validate(item) for item in page.items],
        total=page.total,
        page=page.page,
        limit=page.limit,
        total_pages=page.total_pages,
    )


def _ranked(rows: list) -> list[RankedCount]:
    return [
        RankedCount(value=str(value) if value is not None else None, count=count)
        for value, count in rows
    ]


@router.get("", response_model=AuditLogList)
async def list_audit_logs(
    actor_id: UUID | None = Query(None),
    action: str | None = Query(None),
    entity_type: str | None = Query(None),
    entity_id: str | None = Query(None),
    from_date: datetime | None = Query(None),
    to_date: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    current_user: UserData = Depends(get_current_user),
    service: AuditLogService = Depends(get_audit_log_service),
) -> AuditLogList:
    """Requires: admin:view_audit_logs"""
    filters = AuditLogFilter(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        from_date=from_date,
        to_date=to_date,
    )
    return _page(await service.list_logs(current_user.id, filters, page=page, limit=limit))


@router.get("/actions", response_model=list[str])
async def list_audit_actions(
    current_user: UserData = Depends(get_current_user),
    service: AuditLogService = Depends(get_audit_log_service),
) -> list[str]:
    return await service.available_actions(current_user.id)


@router.get("/stats", response_model=AuditLogStatsRead)
async def get_audit_log_stats(
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
    current_user: UserData = Depends(get_current_user),
    service: AuditLogService = Depends(get_audit_log_service),
) -> AuditLogStatsRead:
    stats = await service.log_stats(current_user.id, start=start, end=end)
    return AuditLogStatsRead(
        total=stats.total,
        top_actions=_ranked(stats.top_actions),
        top_entity_types=_ranked(stats.top_entity_types),
        top_actors=_ranked(stats.top_actors),
    )


@router.get("/entity/{entity_type}/{entity_id}", response_model=AuditLogList)
async def list_entity_audit_logs(
    entity_type: str,
    entity_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    current_user: UserData = Depends(get_current_user),
    service: AuditLogService = Depends(get_audit_log_service),
) -> AuditLogList:
    return _page(
        await service.entity_logs(
            current_user.id, entity_type, entity_id, page=page, limit=limit
        )
    )
