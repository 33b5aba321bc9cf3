import uuid

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.ports.access_logs import AccessLogData, AccessLogStore, AccessType
from ..models.share_link_access import ShareLinkAccess


class AccessLogRepository(AccessLogStore):
    """Append-only store of share link views and downloads."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(
        self,
        *,
        share_link_id: uuid.UUID,
        access_type: AccessType,
        ip_address: str,
        user_agent: str | None,
        referrer: str | None,
        country: str | None,
    ) -> AccessLogData:
        entry = ShareLinkAccess(
            share_link_id=share_link_id,
            access_type=AccessType(access_type).value,
            ip_address=ip_address,
            user_agent=user_agent,
            referrer=referrer,
            country=country,
        )
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def list_for_link(
        self, share_link_id: uuid.UUID, *, offset: int, limit: int
    ) -> tuple[list[AccessLogData], int]:
        total = await self._session.scalar(
            select(func.count())
            .select_from(ShareLinkAccess)
            .where(ShareLinkAccess.share_link_id == share_link_id)
        )
        result = await self._session.execute(
            select(ShareLinkAccess)
            .where(ShareLinkAccess.share_link_id == share_link_id)
            .order_by(ShareLinkAccess.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), int(total or 0)

    async def count_by_type(self, share_link_id: uuid.UUID) -> dict[str, int]:
        result = await self._session.execute(
            select(ShareLinkAccess.access_type, func.count())
            .where(ShareLinkAccess.share_link_id == share_link_id)
            .group_by(ShareLinkAccess.access_type)
        )
        return {access_type: int(count) for access_type, count in result.all()}

    async def distinct_ip_count(self, share_link_id: uuid.UUID) -> int:
        total = await self._session.scalar(
            select(func.count(distinct(ShareLinkAccess.ip_address))).where(
                ShareLinkAccess.share_link_id == share_link_id
            )
        )
        return int(total or 0)

    async def top_countries(
        self, share_link_id: uuid.UUID, *, limit: int
    ) -> list[tuple[str, int]]:
        count = func.count().label("hits")
        result = await self._session.execute(
            select(ShareLinkAccess.country, count)
            .where(
                ShareLinkAccess.share_link_id == share_link_id,
                ShareLinkAccess.country.is_not(None),
            )
            .group_by(ShareLinkAccess.country)
            .order_by(count.desc())
            .limit(limit)
        )
        return [(country, int(hits)) for country, hits in result.all()]
