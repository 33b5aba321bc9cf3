from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Protocol


class AccessType(str, Enum):
    VIEW = "VIEW"
    DOWNLOAD = "DOWNLOAD"


class AccessLogData(Protocol):
    id: uuid.UUID
    share_link_id: uuid.UUID
    access_type: str
    ip_address: str
    user_agent: str | None
    referrer: str | None
    country: str | None
    created_at: datetime


class AccessLogStore(Protocol):
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
        ...

    async def list_for_link(
        self, share_link_id: uuid.UUID, *, offset: int, limit: int
    ) -> tuple[list[AccessLogData], int]:
        ...

    async def count_by_type(self, share_link_id: uuid.UUID) -> dict[str, int]:
        ...

    async def distinct_ip_count(self, share_link_id: uuid.UUID) -> int:
        ...

    async def top_countries(
        self, share_link_id: uuid.UUID, *, limit: int
    ) -> list[tuple[str, int]]:
        ...
