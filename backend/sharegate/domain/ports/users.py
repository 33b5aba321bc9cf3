from __future__ import annotations

import uuid
from typing import Protocol


class UserData(Protocol):
    id: uuid.UUID
    email: str
    name: str | None
    role: str
    additional_permissions: list[str]
    is_active: bool
    can_download_directly: bool


class UserStore(Protocol):
    async def get(self, user_id: uuid.UUID) -> UserData | None:
        ...

    async def set_additional_permissions(
        self, user_id: uuid.UUID, permissions: list[str]
    ) -> UserData | None:
        ...

    async def set_can_download_directly(
        self, user_id: uuid.UUID, enabled: bool
    ) -> UserData | None:
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...
