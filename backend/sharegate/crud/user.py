import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.ports.users import UserData, UserStore
from ..models.user import User


async def get_user(session: AsyncSession, user_id: uuid.UUID) -> User | None:
    return await session.get(User, user_id)


class UserRepository(UserStore):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: uuid.UUID) -> UserData | None:
        return await get_user(self._session, user_id)

    async def set_additional_permissions(
        self, user_id: uuid.UUID, permissions: list[str]
    ) -> UserData | None:
        user = await get_user(self._session, user_id)
        if user is None:
            return None
        user.additional_permissions = list(permissions)
        await self._session.flush()
        return user

    async def set_can_download_directly(
        self, user_id: uuid.UUID, enabled: bool
    ) -> UserData | None:
        user = await get_user(self._session, user_id)
        if user is None:
            return None
        user.can_download_directly = enabled
        await self._session.flush()
        return user

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()
