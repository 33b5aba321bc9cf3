import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from ...auth.permissions import (
    ROLE_CATEGORIES,
    ROLE_DESCRIPTIONS,
    Permission,
    Role,
    default_permissions_for,
    parse_permission,
    parse_permissions,
    parse_role,
    sort_permissions,
    unknown_permissions,
)
from ...domain.context import EMPTY_CONTEXT, RequestContext
from ...domain.ports.role_templates import RoleTemplateData, RoleTemplateStore
from ...errors import NotFoundError, ValidationError
from ...models.audit_log import AuditAction
from ..audit.audit_service import AuditEmitter
from .permission_service import PermissionResolver

logger = logging.getLogger("sharegate.permissions")

DEFAULT_TEMPLATE_CATEGORY = "Default"


@dataclass(frozen=True)
class RoleTemplateView:
    role: Role
    permissions: list[Permission]
    category: str
    description: str | None
    is_default: bool
    id: uuid.UUID | str
    role_category: str
    updated_by_id: uuid.UUID | None = None
    updated_at: datetime | None = None


def _default_view(role: Role) -> RoleTemplateView:
    return RoleTemplateView(
        id=f"default-{role.value}",
        role=role,
        permissions=sort_permissions(default_permissions_for(role)),
        category=DEFAULT_TEMPLATE_CATEGORY,
        description=ROLE_DESCRIPTIONS.get(role),
        is_default=True,
        role_category=ROLE_CATEGORIES[role],
    )


def _stored_view(role: Role, template: RoleTemplateData) -> RoleTemplateView:
    return RoleTemplateView(
        id=template.id,
        role=role,
        permissions=sort_permissions(parse_permissions(template.permissions)),
        category=template.category,
        description=template.description,
        is_default=False,
        role_category=ROLE_CATEGORIES[role],
        updated_by_id=template.updated_by_id,
        updated_at=template.updated_at,
    )


def _require_role(value: str | Role) -> Role:
    role = parse_role(value)
    if role is None:
        raise ValidationError(f"Unknown role '{value}'")
    return role


class RoleTemplateService:
    """Admin-editable overrides of the catalog's role defaults."""

    def __init__(
        self,
        templates: RoleTemplateStore,
        resolver: PermissionResolver,
        audit: AuditEmitter,
    ) -> None:
        self._templates = templates
        self._resolver = resolver
        self._audit = audit

    async def list_templates(
        self, actor_id: uuid.UUID, *, context: RequestContext = EMPTY_CONTEXT
    ) -> list[RoleTemplateView]:
        """One entry per role: its stored template or a synthesized default."""
        await self._resolver.require_permission(
            actor_id, Permission.ADMIN_MANAGE_ROLES, context=context
        )
        stored: dict[Role, RoleTemplateData] = {}
        for template in await self._templates.list_all():
            role = parse_role(template.role)
            if role is not None:
                stored[role] = template
        return [
            _stored_view(role, stored[role]) if role in stored else _default_view(role)
            for role in Role
        ]

    async def get_template(
        self,
        actor_id: uuid.UUID,
        role: str | Role,
        *,
        context: RequestContext = EMPTY_CONTEXT,
    ) -> RoleTemplateView:
        await self._resolver.require_permission(
            actor_id, Permission.ADMIN_MANAGE_ROLES, context=context
        )
        parsed = _require_role(role)
        template = await self._templates.get_by_role(parsed.value)
        if template is None:
            return _default_view(parsed)
        return _stored_view(parsed, template)

    async def upsert_template(
        self,
        actor_id: uuid.UUID,
        role: str | Role,
        permissions: list[str],
        *,
        category: str,
        description: str | None = None,
        context: RequestContext = EMPTY_CONTEXT,
    ) -> RoleTemplateView:
        await self._resolver.require_permission(
            actor_id, Permission.ADMIN_MANAGE_ROLES, context=context
        )
        parsed = _require_role(role)
        unknown = unknown_permissions(permissions)
        if unknown:
            raise ValidationError("Unknown permissions", details={"unknown": unknown})
        if not category or not category.strip():
            raise ValidationError("category must not be empty")

        new_permissions = [
            p.value for p in sort_permissions(parse_permission(value) for value in permissions)
        ]

        try:
            existing = await self._templates.get_by_role(parsed.value)
            old_values = None
            if existing is not None:
                old_values = {
                    "permissions": list(existing.permissions),
                    "category": existing.category,
                    "description": existing.description,
                }
            template = await self._templates.upsert(
                parsed.value,
                permissions=new_permissions,
                category=category.strip(),
                description=description,
                updated_by_id=actor_id,
            )
            await self._templates.commit()
        except Exception:
            await self._templates.rollback()
            raise

        action = (
            AuditAction.ROLE_TEMPLATE_CREATED
            if old_values is None
            else AuditAction.ROLE_TEMPLATE_UPDATED
        )
        logger.info("role_template_saved role=%s action=%s", parsed.value, action.value)
        await self._audit.emit(
            action,
            actor_id=actor_id,
            entity_type="role_template",
            entity_id=parsed.value,
            old_values=old_values,
            new_values={
                "permissions": new_permissions,
                "category": template.category,
                "description": template.description,
            },
            context=context,
        )
        return _stored_view(parsed, template)

    async def delete_template(
        self,
        actor_id: uuid.UUID,
        role: str | Role,
        *,
        context: RequestContext = EMPTY_CONTEXT,
    ) -> None:
        """Remove a stored template so the role falls back to catalog defaults."""
        await self._resolver.require_permission(
            actor_id, Permission.ADMIN_MANAGE_ROLES, context=context
        )
        parsed = _require_role(role)

        try:
            existing = await self._templates.get_by_role(parsed.value)
            if existing is None:
                raise NotFoundError("Role template not found")
            old_values = {
                "permissions": list(existing.permissions),
                "category": existing.category,
                "description": existing.description,
            }
            await self._templates.delete_by_role(parsed.value)
            await self._templates.commit()
        except Exception:
            await self._templates.rollback()
            raise

        logger.info("role_template_deleted role=%s", parsed.value)
        await self._audit.emit(
            AuditAction.ROLE_TEMPLATE_DELETED,
            actor_id=actor_id,
            entity_type="role_template",
            entity_id=parsed.value,
            old_values=old_values,
            context=context,
        )
