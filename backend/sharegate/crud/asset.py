import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.ports.assets import AssetData, AssetStore
from ..models.asset import Asset


class AssetRepository(AssetStore):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, asset_id: uuid.UUID) -> AssetData | None:
        return await self._session.get(Asset, asset_id)
