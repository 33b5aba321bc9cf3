"""
Share link management for authenticated users.

Creators manage their own links; holders of admin:full_access manage all of
them and can list every link in the system.
"""
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_current_user, get_request_context, get_share_link_manager
from ..domain.context import RequestContext
from ..domain.ports.share_links import ExpiryStatus, ShareLinkFilter, ShareLinkSortField
from ..domain.ports.users import UserData
from ..schemas.share_link import (
    AccessLogList,
    AccessLogRead,
    CountryCount,
    ShareLinkCreate,
    ShareLinkCreated,
    ShareLinkList,
    ShareLinkRead,
    ShareLinkStatsRead,
    ShareLinkUpdate,
)
from ..services.sharing.share_link_service import ShareLinkManager

router = APIRouter(tags=["share-links"])


@router.post("/share-links", response_model=ShareLinkCreated, status_code=status.HTTP_201_CREATED)
async def create_share_link(
    payload: ShareLinkCreate,
    current_user: UserData = Depends(get_current_user),
    manager: ShareLinkManager = Depends(get_share_link_manager),
    context: RequestContext = Depends(get_request_context),
) -> ShareLinkCreated:
    created = await manager.create(
        payload.asset_id,
        current_user.id,
        password=payload.password,
        expires_at=payload.expires_at,
        max_downloads=payload.max_downloads,
        allow_download=payload.allow_download,
        context=context,
    )
    link = ShareLinkRead.model_validate(created.link)
    return ShareLinkCreated(**link.model_dump(), url=created.url)


@router.get("/share-links", response_model=ShareLinkList)
async def list_share_links(
    is_active: bool | None = Query(None),
    has_password: bool | None = Query(None),
    expiry_status: ExpiryStatus = Query(ExpiryStatus.ALL),
    search: str | None = Query(None, max_length=200),
    created_from: datetime | None = Query(None),
    created_to: datetime | None = Query(None),
    sort_by: ShareLinkSortField = Query(ShareLinkSortField.CREATED_AT),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
    current_user: UserData = Depends(get_current_user),
    manager: ShareLinkManager = Depends(get_share_link_manager),
    context: RequestContext = Depends(get_request_context),
) -> ShareLinkList:
    filters = ShareLinkFilter(
        is_active=is_active,
        has_password=has_password,
        expiry_status=expiry_status,
        search=search,
        created_from=created_from,
        created_to=created_to,
        sort_by=sort_by,
        descending=sort_order == "desc",
    )
    result = await manager.list_all(
        current_user.id,
        filters,
        page=page,
        page_size=page_size,
        context=context,
    )
    return ShareLinkList(
        items=[ShareLinkRead.model_validate(link) for link in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@router.get("/assets/{asset_id}/share-links", response_model=list[ShareLinkRead])
async def list_asset_share_links(
    asset_id: UUID,
    current_user: UserData = Depends(get_current_user),
    manager: ShareLinkManager = Depends(get_share_link_manager),
) -> list[ShareLinkRead]:
    links = await manager.list_for_asset(asset_id, current_user.id)
    return [ShareLinkRead.model_validate(link) for link in links]


@router.patch("/share-links/{link_id}", response_model=ShareLinkRead)
async def update_share_link(
    link_id: UUID,
    payload: ShareLinkUpdate,
    current_user: UserData = Depends(get_current_user),
    manager: ShareLinkManager = Depends(get_share_link_manager),
    context: RequestContext = Depends(get_request_context),
) -> ShareLinkRead:
    """Partial update; send an empty password to remove password protection."""
    changes = payload.model_dump(exclude_unset=True)
    link = await manager.update(link_id, current_user.id, changes, context=context)
    return ShareLinkRead.model_validate(link)


@router.post("/share-links/{link_id}/revoke", response_model=ShareLinkRead)
async def revoke_share_link(
    link_id: UUID,
    current_user: UserData = Depends(get_current_user),
    manager: ShareLinkManager = Depends(get_share_link_manager),
    context: RequestContext = Depends(get_request_context),
) -> ShareLinkRead:
    link = await manager.revoke(link_id, current_user.id, context=context)
    return ShareLinkRead.model_validate(link)


@router.post("/share-links/{link_id}/reactivate", response_model=ShareLinkRead)
async def reactivate_share_link(
    link_id: UUID,
    current_user: UserData = Depends(get_current_user),
    manager: ShareLinkManager = Depends(get_share_link_manager),
    context: RequestContext = Depends(get_request_context),
) -> ShareLinkRead:
    link = await manager.reactivate(link_id, current_user.id, context=context)
    return ShareLinkRead.model_validate(link)


@router.get("/share-links/{link_id}/stats", response_model=ShareLinkStatsRead)
async def get_share_link_stats(
    link_id: UUID,
    current_user: UserData = Depends(get_current_user),
    manager: ShareLinkManager = Depends(get_share_link_manager),
) -> ShareLinkStatsRead:
    stats = await manager.stats(link_id, current_user.id)
    return ShareLinkStatsRead(
        link_id=stats.link_id,
        view_count=stats.view_count,
        download_count=stats.download_count,
        current_downloads=stats.current_downloads,
        max_downloads=stats.max_downloads,
        is_active=stats.is_active,
        is_expired=stats.is_expired,
        accesses_by_type=stats.accesses_by_type,
        unique_visitors=stats.unique_visitors,
        top_countries=[
            CountryCount(country=country, count=count)
            for country, count in stats.top_countries
        ],
    )


@router.get("/share-links/{link_id}/access-logs", response_model=AccessLogList)
async def list_share_link_access_logs(
    link_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    current_user: UserData = Depends(get_current_user),
    manager: ShareLinkManager = Depends(get_share_link_manager),
) -> AccessLogList:
    items, total = await manager.list_access_logs(
        link_id, current_user.id, page=page, limit=limit
    )
    return AccessLogList(
        items=[AccessLogRead.model_validate(item) for item in items],
        total=total,
        page=page,
        limit=limit,
    )
