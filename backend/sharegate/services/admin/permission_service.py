"""
Permission resolver - decides whether a principal may perform an action.

Effective permissions of a user are computed on demand, never cached:

    role_permissions  = stored template for the role, else the catalog default
    all_permissions   = role_permissions | additional_permissions

A stored template replaces the catalog default for its role wholesale, even
when its permission list is empty. Stored strings outside the catalog are
dropped during resolution, and `ADMIN_FULL_ACCESS` acts as a wildcard over
every catalog permission.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Iterable

from ...auth.permissions import (
    WILDCARD_PERMISSION,
    Permission,
    Role,
    default_permissions_for,
    parse_permission,
    parse_permissions,
    parse_role,
)
from ...domain.context import EMPTY_CONTEXT, RequestContext
from ...domain.ports.role_templates import RoleTemplateStore
from ...domain.ports.users import UserData, UserStore
from ...errors import NotFoundError, PermissionError
from ...models.audit_log import AuditAction
from ..audit.audit_service import AuditEmitter

logger = logging.getLogger("sharegate.permissions")


@dataclass(frozen=True)
class ResolvedPermissions:
    user_id: uuid.UUID
    role: Role | None
    role_permissions: frozenset[Permission]
    additional_permissions: frozenset[Permission]
    uses_template: bool

    @property
    def all_permissions(self) -> frozenset[Permission]:
        return self.role_permissions | self.additional_permissions

    @property
    def is_admin_equivalent(self) -> bool:
        return WILDCARD_PERMISSION in self.all_permissions

    def allows(self, permission: Permission) -> bool:
        return permission in self.all_permissions or self.is_admin_equivalent


class PermissionResolver:
    """Service for checking user permissions.

    This is the only place effective permissions are computed. Checks return
    booleans; the only error raised by a check is NotFoundError for an
    unknown user.
    """

    def __init__(
        self,
        users: UserStore,
        templates: RoleTemplateStore,
        audit: AuditEmitter | None = None,
    ) -> None:
        self._users = users
        self._templates = templates
        self._audit = audit

    async def _get_user(self, user_id: uuid.UUID) -> UserData:
        user = await self._users.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def role_permissions(self, role: Role) -> tuple[frozenset[Permission], bool]:
        """Permissions granted by a role and whether they came from a template."""
        template = await self._templates.get_by_role(role.value)
        if template is None:
            return default_permissions_for(role), False
        return parse_permissions(template.permissions), True

    async def resolve_user(self, user: UserData) -> ResolvedPermissions:
        role = parse_role(user.role)
        if role is None:
            logger.warning("unknown_role user_id=%s role=%s", user.id, user.role)
            role_permissions: frozenset[Permission] = frozenset()
            uses_template = False
        else:
            role_permissions, uses_template = await self.role_permissions(role)

        return ResolvedPermissions(
            user_id=user.id,
            role=role,
            role_permissions=role_permissions,
            additional_permissions=parse_permissions(user.additional_permissions or []),
            uses_template=uses_template,
        )

    async def resolve(self, user_id: uuid.UUID) -> ResolvedPermissions:
        """Effective permission set of a user.

        Raises:
            NotFoundError: If the user does not exist
        """
        return await self.resolve_user(await self._get_user(user_id))

    async def has_permission(self, user_id: uuid.UUID, permission: str | Permission) -> bool:
        resolved = await self.resolve(user_id)
        parsed = parse_permission(permission)
        if parsed is None:
            return False
        return resolved.allows(parsed)

    async def has_all_permissions(
        self, user_id: uuid.UUID, permissions: Iterable[str | Permission]
    ) -> bool:
        """True when every permission is held; an empty list is vacuously held."""
        resolved = await self.resolve(user_id)
        for value in permissions:
            parsed = parse_permission(value)
            if parsed is None or not resolved.allows(parsed):
                return False
        return True

    async def has_any_permission(
        self, user_id: uuid.UUID, permissions: Iterable[str | Permission]
    ) -> bool:
        """True when at least one permission is held; never for an empty list."""
        resolved = await self.resolve(user_id)
        for value in permissions:
            parsed = parse_permission(value)
            if parsed is not None and resolved.allows(parsed):
                return True
        return False

    async def require_permission(
        self,
        user_id: uuid.UUID,
        permission: Permission,
        *,
        context: RequestContext = EMPTY_CONTEXT,
    ) -> ResolvedPermissions:
        """Raise PermissionError unless the user holds the permission.

        A denial is written to the audit trail on a best-effort basis.
        """
        resolved = await self.resolve(user_id)
        if resolved.allows(permission):
            return resolved

        logger.warning(
            "permission_denied user_id=%s permission=%s", user_id, permission.value
        )
        if self._audit is not None:
            await self._audit.emit(
                AuditAction.PERMISSION_DENIED,
                actor_id=user_id,
                entity_type="permission",
                entity_id=permission.value,
                additional_data={
                    "required_permission": permission.value,
                    "role": resolved.role.value if resolved.role else None,
                },
                context=context,
            )
        raise PermissionError(f"Permission denied: {permission.value} required")
