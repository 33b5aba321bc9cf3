from __future__ import annotations

import uuid
from datetime import datetime
from typing import Protocol


class RoleTemplateData(Protocol):
    id: uuid.UUID
    role: str
    permissions: list[str]
    description: str | None
    category: str
    updated_by_id: uuid.UUID | None
    created_at: datetime
    updated_at: datetime


class RoleTemplateStore(Protocol):
    async def get_by_role(self, role: str) -> RoleTemplateData | None:
        ...

    async def list_all(self) -> list[RoleTemplateData]:
        ...

    async def upsert(
        self,
        role: str,
        *,
        permissions: list[str],
        category: str,
        description: str | None,
        updated_by_id: uuid.UUID | None,
    ) -> RoleTemplateData:
        ...

    async def delete_by_role(self, role: str) -> bool:
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...
