import logging
import uuid
from dataclasses import dataclass

from ...auth.permissions import (
    Permission,
    can_manage_user_by_role,
    parse_permission,
    parse_role,
    sort_permissions,
    unknown_permissions,
)
from ...domain.context import EMPTY_CONTEXT, RequestContext
from ...domain.ports.users import UserData, UserStore
from ...errors import NotFoundError, PermissionError, ValidationError
from ...models.audit_log import AuditAction
from ..audit.audit_service import AuditEmitter
from .permission_service import PermissionResolver, ResolvedPermissions

logger = logging.getLogger("sharegate.permissions")


@dataclass(frozen=True)
class UserPermissionsView:
    user_id: uuid.UUID
    email: str
    role: str
    permissions: ResolvedPermissions


@dataclass(frozen=True)
class DownloadAccessView:
    user_id: uuid.UUID
    email: str
    role: str
    can_download_directly: bool


class UserPermissionService:
    def __init__(
        self,
        users: UserStore,
        resolver: PermissionResolver,
        audit: AuditEmitter,
    ) -> None:
        self._users = users
        self._resolver = resolver
        self._audit = audit

    async def _get_user(self, user_id: uuid.UUID) -> UserData:
        user = await self._users.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def _get_manageable_user(
        self,
        actor_id: uuid.UUID,
        target_user_id: uuid.UUID,
        *,
        context: RequestContext,
    ) -> UserData:
        actor_permissions = await self._resolver.require_permission(
            actor_id, Permission.USER_UPDATE_PERMISSIONS, context=context
        )
        target = await self._get_user(target_user_id)

        actor_role = actor_permissions.role
        target_role = parse_role(target.role)
        if (
            actor_role is None
            or target_role is None
            or not can_manage_user_by_role(actor_role, target_role)
        ):
            raise PermissionError("You cannot manage users with this role")
        return target

    async def get_user_permissions(
        self,
        actor_id: uuid.UUID,
        target_user_id: uuid.UUID,
        *,
        context: RequestContext = EMPTY_CONTEXT,
    ) -> UserPermissionsView:
        if actor_id != target_user_id:
            await self._resolver.require_permission(
                actor_id, Permission.USER_READ, context=context
            )
        target = await self._get_user(target_user_id)
        return UserPermissionsView(
            user_id=target.id,
            email=target.email,
            role=target.role,
            permissions=await self._resolver.resolve_user(target),
        )

    async def update_user_permissions(
        self,
        actor_id: uuid.UUID,
        target_user_id: uuid.UUID,
        permissions: list[str],
        *,
        context: RequestContext = EMPTY_CONTEXT,
    ) -> UserPermissionsView:
        """Replace a user's additional permissions.

        Raises:
            PermissionError: If the actor lacks USER_UPDATE_PERMISSIONS or may
                not manage the target's role
            NotFoundError: If the target user does not exist
            ValidationError: If any permission is not in the catalog
        """
        target = await self._get_manageable_user(actor_id, target_user_id, context=context)

        unknown = unknown_permissions(permissions)
        if unknown:
            raise ValidationError("Unknown permissions", details={"unknown": unknown})

        old_permissions = list(target.additional_permissions or [])
        new_permissions = [
            p.value for p in sort_permissions(parse_permission(value) for value in permissions)
        ]

        try:
            updated = await self._users.set_additional_permissions(
                target_user_id, new_permissions
            )
            if updated is None:
                raise NotFoundError("User not found")
            await self._users.commit()
        except Exception:
            await self._users.rollback()
            raise

        logger.info(
            "user_permissions_updated actor_id=%s target_id=%s count=%s",
            actor_id,
            target_user_id,
            len(new_permissions),
        )
        await self._audit.emit(
            AuditAction.USER_PERMISSIONS_UPDATED,
            actor_id=actor_id,
            entity_type="user",
            entity_id=target_user_id,
            old_values={"additional_permissions": old_permissions},
            new_values={"additional_permissions": new_permissions},
            additional_data={
                "target_email": updated.email,
                "target_role": updated.role,
                "updated_by": str(actor_id),
            },
            context=context,
        )
        return UserPermissionsView(
            user_id=updated.id,
            email=updated.email,
            role=updated.role,
            permissions=await self._resolver.resolve_user(updated),
        )

    async def set_download_access(
        self,
        actor_id: uuid.UUID,
        target_user_id: uuid.UUID,
        enabled: bool,
        *,
        context: RequestContext = EMPTY_CONTEXT,
    ) -> DownloadAccessView:
        """Turn direct file downloads on or off for a user.

        Same gate as permission edits. Setting the current value again is
        still audited.
        """
        target = await self._get_manageable_user(actor_id, target_user_id, context=context)
        previous = bool(target.can_download_directly)

        try:
            updated = await self._users.set_can_download_directly(target_user_id, enabled)
            if updated is None:
                raise NotFoundError("User not found")
            await self._users.commit()
        except Exception:
            await self._users.rollback()
            raise

        logger.info(
            "user_download_access_changed actor_id=%s target_id=%s enabled=%s",
            actor_id,
            target_user_id,
            enabled,
        )
        await self._audit.emit(
            AuditAction.USER_DOWNLOAD_ACCESS_CHANGED,
            actor_id=actor_id,
            entity_type="user",
            entity_id=target_user_id,
            old_values={"can_download_directly": previous},
            new_values={"can_download_directly": enabled},
            additional_data={
                "target_email": updated.email,
                "target_role": updated.role,
            },
            context=context,
        )
        return DownloadAccessView(
            user_id=updated.id,
            email=updated.email,
            role=updated.role,
            can_download_directly=updated.can_download_directly,
        )
