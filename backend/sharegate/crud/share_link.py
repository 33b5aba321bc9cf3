import uuid
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import Update, and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.ports.share_links import (
    ExpiryStatus,
    ShareLinkData,
    ShareLinkFilter,
    ShareLinkSortField,
    ShareLinkStore,
)
from ..models.asset import Asset
from ..models.share_link import ShareLink

EXPIRING_SOON_WINDOW = timedelta(hours=24)

UPDATABLE_FIELDS = frozenset(
    {"password_hash", "expires_at", "max_downloads", "allow_download"}
)


def consume_download_statement(link_id: uuid.UUID, now: datetime) -> Update:
    """Single-statement quota check and increment.

    Both counters advance together and only while the link is active, not
    expired and under quota, so concurrent downloads cannot overshoot.
    """
    return (
        update(ShareLink)
        .where(
            ShareLink.id == link_id,
            ShareLink.is_active.is_(True),
            or_(ShareLink.expires_at.is_(None), ShareLink.expires_at > now),
            or_(
                ShareLink.max_downloads.is_(None),
                ShareLink.current_downloads < ShareLink.max_downloads,
            ),
        )
        .values(
            current_downloads=ShareLink.current_downloads + 1,
            download_count=ShareLink.download_count + 1,
            last_accessed_at=now,
        )
        .returning(ShareLink)
        .execution_options(populate_existing=True)
    )


def update_link_statement(link_id: uuid.UUID, changes: dict[str, Any]) -> Update:
    """Owner-side edit of a link.

    A new quota is only written while it still covers the downloads already
    served, checked in the same statement that writes it.
    """
    statement = update(ShareLink).where(ShareLink.id == link_id)
    if changes.get("max_downloads") is not None:
        statement = statement.where(ShareLink.current_downloads <= changes["max_downloads"])
    return (
        statement.values(**changes)
        .returning(ShareLink)
        .execution_options(populate_existing=True)
    )


def record_view_statement(link_id: uuid.UUID, now: datetime) -> Update:
    return (
        update(ShareLink)
        .where(ShareLink.id == link_id)
        .values(view_count=ShareLink.view_count + 1, last_accessed_at=now)
    )


def _filter_conditions(filters: ShareLinkFilter, now: datetime) -> list:
    conditions = []
    if filters.is_active is not None:
        conditions.append(ShareLink.is_active.is_(filters.is_active))
    if filters.has_password is True:
        conditions.append(ShareLink.password_hash.is_not(None))
    elif filters.has_password is False:
        conditions.append(ShareLink.password_hash.is_(None))

    if filters.expiry_status == ExpiryStatus.EXPIRED:
        conditions.append(ShareLink.expires_at <= now)
    elif filters.expiry_status == ExpiryStatus.EXPIRING_SOON:
        conditions.append(ShareLink.expires_at > now)
        conditions.append(ShareLink.expires_at <= now + EXPIRING_SOON_WINDOW)
    elif filters.expiry_status == ExpiryStatus.NEVER:
        conditions.append(ShareLink.expires_at.is_(None))

    if filters.search:
        pattern = f"%{filters.search}%"
        conditions.append(or_(Asset.name.ilike(pattern), Asset.title.ilike(pattern)))
    if filters.created_from is not None:
        conditions.append(ShareLink.created_at >= filters.created_from)
    if filters.created_to is not None:
        conditions.append(ShareLink.created_at <= filters.created_to)
    return conditions


_SORT_COLUMNS = {
    ShareLinkSortField.CREATED_AT: ShareLink.created_at,
    ShareLinkSortField.EXPIRES_AT: ShareLink.expires_at,
    ShareLinkSortField.VIEW_COUNT: ShareLink.view_count,
    ShareLinkSortField.DOWNLOAD_COUNT: ShareLink.download_count,
    ShareLinkSortField.ASSET_NAME: Asset.name,
}


class ShareLinkRepository(ShareLinkStore):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def token_exists(self, token: str) -> bool:
        found = await self._session.scalar(
            select(ShareLink.id).where(ShareLink.token == token)
        )
        return found is not None

    async def create(
        self,
        *,
        token: str,
        asset_id: uuid.UUID,
        created_by_id: uuid.UUID,
        password_hash: str | None,
        expires_at: datetime | None,
        max_downloads: int | None,
        allow_download: bool,
    ) -> ShareLinkData:
        link = ShareLink(
            token=token,
            asset_id=asset_id,
            created_by_id=created_by_id,
            password_hash=password_hash,
            expires_at=expires_at,
            max_downloads=max_downloads,
            allow_download=allow_download,
        )
        self._session.add(link)
        await self._session.flush()
        await self._session.refresh(link)
        return link

    async def get_by_id(self, link_id: uuid.UUID) -> ShareLinkData | None:
        return await self._session.get(ShareLink, link_id)

    async def get_by_token(self, token: str) -> ShareLinkData | None:
        result = await self._session.execute(
            select(ShareLink).where(ShareLink.token == token)
        )
        return result.scalar_one_or_none()

    async def record_view(self, link_id: uuid.UUID, *, now: datetime) -> None:
        await self._session.execute(record_view_statement(link_id, now))

    async def consume_download(
        self, link_id: uuid.UUID, *, now: datetime
    ) -> ShareLinkData | None:
        result = await self._session.execute(consume_download_statement(link_id, now))
        return result.scalar_one_or_none()

    async def set_active(self, link_id: uuid.UUID, is_active: bool) -> ShareLinkData | None:
        link = await self._session.get(ShareLink, link_id)
        if link is None:
            return None
        link.is_active = is_active
        await self._session.flush()
        await self._session.refresh(link)
        return link

    async def update(self, link_id: uuid.UUID, changes: dict[str, Any]) -> ShareLinkData | None:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Share link fields are not updatable: {sorted(unknown)}")
        result = await self._session.execute(update_link_statement(link_id, changes))
        return result.scalar_one_or_none()

    async def list_by_asset(self, asset_id: uuid.UUID) -> list[ShareLinkData]:
        result = await self._session.execute(
            select(ShareLink)
            .where(ShareLink.asset_id == asset_id)
            .order_by(ShareLink.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_filtered(
        self,
        filters: ShareLinkFilter,
        *,
        now: datetime,
        offset: int,
        limit: int,
    ) -> tuple[list[ShareLinkData], int]:
        conditions = _filter_conditions(filters, now)
        query = select(ShareLink).join(Asset, Asset.id == ShareLink.asset_id)
        count_query = (
            select(func.count())
            .select_from(ShareLink)
            .join(Asset, Asset.id == ShareLink.asset_id)
        )
        if conditions:
            query = query.where(and_(*conditions))
            count_query = count_query.where(and_(*conditions))

        sort_column = _SORT_COLUMNS[filters.sort_by]
        order = sort_column.desc() if filters.descending else sort_column.asc()
        query = query.order_by(order.nulls_last(), ShareLink.id).offset(offset).limit(limit)

        total = await self._session.scalar(count_query)
        result = await self._session.execute(query)
        return list(result.scalars().all()), int(total or 0)

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()
