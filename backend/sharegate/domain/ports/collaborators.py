from __future__ import annotations

from datetime import datetime
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""
        ...


class PasswordHasher(Protocol):
    async def hash(self, password: str) -> str:
        ...

    async def verify(self, password: str, password_hash: str) -> bool:
        ...


class TokenSource(Protocol):
    def new_token(self) -> str:
        ...


class ObjectLocator(Protocol):
    async def presign(
        self,
        key: str,
        *,
        expires_in: int,
        download: bool = False,
        filename: str | None = None,
    ) -> str:
        """Short-lived URL for a stored object. Never persisted."""
        ...
