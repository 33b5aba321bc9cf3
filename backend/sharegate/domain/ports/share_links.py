from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Protocol


class ShareLinkData(Protocol):
    id: uuid.UUID
    token: str
    asset_id: uuid.UUID
    created_by_id: uuid.UUID
    password_hash: str | None
    expires_at: datetime | None
    max_downloads: int | None
    current_downloads: int
    allow_download: bool
    is_active: bool
    view_count: int
    download_count: int
    last_accessed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class ExpiryStatus(str, Enum):
    ALL = "ALL"
    EXPIRED = "EXPIRED"
    EXPIRING_SOON = "EXPIRING_SOON"
    NEVER = "NEVER"


class ShareLinkSortField(str, Enum):
    CREATED_AT = "created_at"
    EXPIRES_AT = "expires_at"
    VIEW_COUNT = "view_count"
    DOWNLOAD_COUNT = "download_count"
    ASSET_NAME = "asset_name"


@dataclass(frozen=True)
class ShareLinkFilter:
    is_active: bool | None = None
    has_password: bool | None = None
    expiry_status: ExpiryStatus = ExpiryStatus.ALL
    search: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    sort_by: ShareLinkSortField = ShareLinkSortField.CREATED_AT
    descending: bool = True


class ShareLinkStore(Protocol):
    async def token_exists(self, token: str) -> bool:
        ...

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
        ...

    async def get_by_id(self, link_id: uuid.UUID) -> ShareLinkData | None:
        ...

    async def get_by_token(self, token: str) -> ShareLinkData | None:
        ...

    async def record_view(self, link_id: uuid.UUID, *, now: datetime) -> None:
        """Increment view_count and stamp last_accessed_at in one statement."""
        ...

    async def consume_download(
        self, link_id: uuid.UUID, *, now: datetime
    ) -> ShareLinkData | None:
        """Atomic check-and-increment of both download counters.

        Returns the updated link, or None when the link is inactive, expired
        or out of quota at the moment the update is applied.
        """
        ...

    async def set_active(self, link_id: uuid.UUID, is_active: bool) -> ShareLinkData | None:
        ...

    async def update(self, link_id: uuid.UUID, changes: dict[str, Any]) -> ShareLinkData | None:
        ...

    async def list_by_asset(self, asset_id: uuid.UUID) -> list[ShareLinkData]:
        ...

    async def list_filtered(
        self,
        filters: ShareLinkFilter,
        *,
        now: datetime,
        offset: int,
        limit: int,
    ) -> tuple[list[ShareLinkData], int]:
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...
