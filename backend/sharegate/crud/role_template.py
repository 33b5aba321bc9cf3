import uuid

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.ports.role_templates import RoleTemplateData, RoleTemplateStore
from ..models.role_template import RoleTemplate


async def get_role_template(session: AsyncSession, role: str) -> RoleTemplate | None:
    result = await session.execute(select(RoleTemplate).where(RoleTemplate.role == role))
    return result.scalar_one_or_none()


async def upsert_role_template(
    session: AsyncSession,
    role: str,
    *,
    permissions: list[str],
    category: str,
    description: str | None,
    updated_by_id: uuid.UUID | None,
) -> RoleTemplate:
    stmt = pg_insert(RoleTemplate).values(
        id=uuid.uuid4(),
        role=role,
        permissions=permissions,
        category=category,
        description=description,
        updated_by_id=updated_by_id,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["role"],
        set_={
            "permissions": stmt.excluded.permissions,
            "category": stmt.excluded.category,
            "description": stmt.excluded.description,
            "updated_by_id": stmt.excluded.updated_by_id,
            "updated_at": func.now(),
        },
    ).returning(RoleTemplate)
    # populate_existing so an identity-mapped row picks up the new values
    result = await session.execute(
        stmt, execution_options={"populate_existing": True}
    )
    template = result.scalar_one_or_none()
    if template is None:
        raise RuntimeError(f"Role template upsert did not return a row for role={role}")
    return template


class RoleTemplateRepository(RoleTemplateStore):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_role(self, role: str) -> RoleTemplateData | None:
        return await get_role_template(self._session, role)

    async def list_all(self) -> list[RoleTemplateData]:
        result = await self._session.execute(select(RoleTemplate).order_by(RoleTemplate.role))
        return list(result.scalars().all())

    async def upsert(
        self,
        role: str,
        *,
        permissions: list[str],
        category: str,
        description: str | None,
        updated_by_id: uuid.UUID | None,
    ) -> RoleTemplateData:
        return await upsert_role_template(
            self._session,
            role,
            permissions=permissions,
            category=category,
            description=description,
            updated_by_id=updated_by_id,
        )

    async def delete_by_role(self, role: str) -> bool:
        result = await self._session.execute(
            delete(RoleTemplate).where(RoleTemplate.role == role)
        )
        return (result.rowcount or 0) > 0

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()
