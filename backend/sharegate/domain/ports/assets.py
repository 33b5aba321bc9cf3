from __future__ import annotations

import uuid
from datetime import datetime
from typing import Protocol


class AssetData(Protocol):
    id: uuid.UUID
    name: str
    title: str | None
    description: str | None
    type: str
    mime_type: str | None
    file_name: str | None
    original_name: str | None
    file_size: int | None
    file_key: str | None
    preview_key: str | None
    thumbnail_key: str | None
    created_at: datetime


class AssetStore(Protocol):
    async def get(self, asset_id: uuid.UUID) -> AssetData | None:
        ...
