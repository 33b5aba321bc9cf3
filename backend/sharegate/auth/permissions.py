"""
Permission catalog - closed registry of permissions, roles and role defaults.

Everything in this module is static. Permissions and roles are closed
enumerations; strings coming from storage or requests are parsed through
`parse_permission`, which fails closed (unknown -> None) so a typo can never
widen access.

The catalog is validated at import time: every permission must belong to
exactly one category, and every role must have a default permission set.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final, Iterable


class Permission(str, Enum):
    # Project management
    PROJECT_CREATE = "project:create"
    PROJECT_READ = "project:read"
    PROJECT_UPDATE = "project:update"
    PROJECT_DELETE = "project:delete"
    PROJECT_MANAGE_MEMBERS = "project:manage_members"

    # Task management
    TASK_CREATE = "task:create"
    TASK_READ = "task:read"
    TASK_UPDATE = "task:update"
    TASK_DELETE = "task:delete"
    TASK_ASSIGN = "task:assign"

    # Asset management
    ASSET_CREATE = "asset:create"
    ASSET_READ = "asset:read"
    ASSET_UPDATE = "asset:update"
    ASSET_DELETE = "asset:delete"
    ASSET_REQUEST_DOWNLOAD = "asset:request_download"
    ASSET_APPROVE_DOWNLOAD = "asset:approve_download"

    # Comments
    COMMENT_CREATE = "comment:create"
    COMMENT_READ = "comment:read"
    COMMENT_DELETE = "comment:delete"

    # User management
    USER_READ = "user:read"
    USER_UPDATE = "user:update"
    USER_UPDATE_PERMISSIONS = "user:update_permissions"

    # Administration
    ADMIN_FULL_ACCESS = "admin:full_access"
    ADMIN_VIEW_AUDIT_LOGS = "admin:view_audit_logs"
    ADMIN_MANAGE_ROLES = "admin:manage_roles"
    ADMIN_MANAGE_COMPANIES = "admin:manage_companies"
    ADMIN_VIEW_ANALYTICS = "admin:view_analytics"
    ADMIN_SYSTEM_SETTINGS = "admin:system_settings"

    # Translation management
    TRANSLATION_CREATE = "translation:create"
    TRANSLATION_READ = "translation:read"
    TRANSLATION_UPDATE = "translation:update"
    TRANSLATION_REQUEST = "translation:request"
    TRANSLATION_ASSIGN = "translation:assign"


class Role(str, Enum):
    ADMIN = "ADMIN"
    PROJECT_MANAGER = "PROJECT_MANAGER"
    MODERATOR = "MODERATOR"
    ART_DIRECTOR = "ART_DIRECTOR"
    DESIGNER = "DESIGNER"
    VIDEO_EDITOR = "VIDEO_EDITOR"
    DESIGNER_3D = "DESIGNER_3D"
    DESIGNER_2D = "DESIGNER_2D"
    VFX_CGI = "VFX_CGI"
    MOTION_GRAPHICS = "MOTION_GRAPHICS"
    WEB_DEVELOPER = "WEB_DEVELOPER"
    UI_UX_DESIGNER = "UI_UX_DESIGNER"
    ANIMATOR = "ANIMATOR"
    CLIENT = "CLIENT"
    CONTENT_CREATOR = "CONTENT_CREATOR"
    TRANSLATOR = "TRANSLATOR"


# Holding this permission authorizes every other permission.
WILDCARD_PERMISSION: Final[Permission] = Permission.ADMIN_FULL_ACCESS


@dataclass(frozen=True)
class PermissionCategory:
    name: str
    description: str
    permissions: tuple[Permission, ...]


# Presentation only - categories carry no authorization semantics.
PERMISSION_CATEGORIES: Final[dict[str, PermissionCategory]] = {
    "PROJECT": PermissionCategory(
        name="Project Management",
        description="Create, edit, and manage projects",
        permissions=(
            Permission.PROJECT_CREATE,
            Permission.PROJECT_READ,
            Permission.PROJECT_UPDATE,
            Permission.PROJECT_DELETE,
            Permission.PROJECT_MANAGE_MEMBERS,
        ),
    ),
    "TASK": PermissionCategory(
        name="Task Management",
        description="Create and manage tasks",
        permissions=(
            Permission.TASK_CREATE,
            Permission.TASK_READ,
            Permission.TASK_UPDATE,
            Permission.TASK_DELETE,
            Permission.TASK_ASSIGN,
        ),
    ),
    "ASSET": PermissionCategory(
        name="Asset Management",
        description="Upload, manage, and download assets",
        permissions=(
            Permission.ASSET_CREATE,
            Permission.ASSET_READ,
            Permission.ASSET_UPDATE,
            Permission.ASSET_DELETE,
            Permission.ASSET_REQUEST_DOWNLOAD,
            Permission.ASSET_APPROVE_DOWNLOAD,
        ),
    ),
    "COMMENT": PermissionCategory(
        name="Comments & Feedback",
        description="Comment on projects and tasks",
        permissions=(
            Permission.COMMENT_CREATE,
            Permission.COMMENT_READ,
            Permission.COMMENT_DELETE,
        ),
    ),
    "USER": PermissionCategory(
        name="User Management",
        description="View and manage users",
        permissions=(
            Permission.USER_READ,
            Permission.USER_UPDATE,
            Permission.USER_UPDATE_PERMISSIONS,
        ),
    ),
    "ADMIN": PermissionCategory(
        name="Administration",
        description="System-wide administrative access",
        permissions=(
            Permission.ADMIN_FULL_ACCESS,
            Permission.ADMIN_VIEW_AUDIT_LOGS,
            Permission.ADMIN_MANAGE_ROLES,
            Permission.ADMIN_MANAGE_COMPANIES,
            Permission.ADMIN_VIEW_ANALYTICS,
            Permission.ADMIN_SYSTEM_SETTINGS,
        ),
    ),
    "TRANSLATION": PermissionCategory(
        name="Translation Management",
        description="Request, assign, and edit translations",
        permissions=(
            Permission.TRANSLATION_CREATE,
            Permission.TRANSLATION_READ,
            Permission.TRANSLATION_UPDATE,
            Permission.TRANSLATION_REQUEST,
            Permission.TRANSLATION_ASSIGN,
        ),
    ),
}


_CREATIVE_BASE: Final[frozenset[Permission]] = frozenset({
    Permission.PROJECT_READ,
    Permission.TASK_READ,
    Permission.ASSET_CREATE,
    Permission.ASSET_READ,
    Permission.ASSET_UPDATE,
    Permission.ASSET_DELETE,
    Permission.ASSET_REQUEST_DOWNLOAD,
    Permission.COMMENT_CREATE,
    Permission.COMMENT_READ,
})


DEFAULT_ROLE_PERMISSIONS: Final[dict[Role, frozenset[Permission]]] = {
    Role.ADMIN: frozenset(Permission),
    Role.MODERATOR: frozenset({
        Permission.PROJECT_READ,
        Permission.PROJECT_UPDATE,
        Permission.TASK_CREATE,
        Permission.TASK_READ,
        Permission.TASK_UPDATE,
        Permission.TASK_ASSIGN,
        Permission.ASSET_READ,
        Permission.ASSET_UPDATE,
        Permission.ASSET_APPROVE_DOWNLOAD,
        Permission.COMMENT_CREATE,
        Permission.COMMENT_READ,
        Permission.COMMENT_DELETE,
        Permission.USER_READ,
        Permission.USER_UPDATE,
    }),
    Role.CONTENT_CREATOR: _CREATIVE_BASE,
    Role.CLIENT: frozenset({
        Permission.PROJECT_READ,
        Permission.TASK_READ,
        Permission.ASSET_READ,
        Permission.ASSET_REQUEST_DOWNLOAD,
        Permission.COMMENT_CREATE,
        Permission.COMMENT_READ,
    }),
    Role.ART_DIRECTOR: _CREATIVE_BASE | {
        Permission.PROJECT_UPDATE,
        Permission.TASK_CREATE,
        Permission.TASK_ASSIGN,
    },
    Role.DESIGNER: _CREATIVE_BASE,
    Role.VIDEO_EDITOR: _CREATIVE_BASE,
    Role.DESIGNER_3D: _CREATIVE_BASE,
    Role.DESIGNER_2D: _CREATIVE_BASE,
    Role.VFX_CGI: _CREATIVE_BASE,
    Role.MOTION_GRAPHICS: _CREATIVE_BASE,
    Role.WEB_DEVELOPER: _CREATIVE_BASE,
    Role.UI_UX_DESIGNER: _CREATIVE_BASE,
    Role.ANIMATOR: _CREATIVE_BASE,
    Role.PROJECT_MANAGER: frozenset({
        Permission.PROJECT_CREATE,
        Permission.PROJECT_READ,
        Permission.PROJECT_UPDATE,
        Permission.PROJECT_MANAGE_MEMBERS,
        Permission.TASK_CREATE,
        Permission.TASK_READ,
        Permission.TASK_UPDATE,
        Permission.TASK_DELETE,
        Permission.TASK_ASSIGN,
        Permission.ASSET_READ,
        Permission.ASSET_REQUEST_DOWNLOAD,
        Permission.COMMENT_CREATE,
        Permission.COMMENT_READ,
        Permission.COMMENT_DELETE,
    }),
    Role.TRANSLATOR: frozenset({
        Permission.TRANSLATION_CREATE,
        Permission.TRANSLATION_READ,
        Permission.TRANSLATION_UPDATE,
        Permission.TRANSLATION_REQUEST,
        Permission.COMMENT_CREATE,
        Permission.COMMENT_READ,
    }),
}


ROLE_CATEGORIES: Final[dict[Role, str]] = {
    Role.ADMIN: "Management",
    Role.PROJECT_MANAGER: "Management",
    Role.MODERATOR: "Management",
    Role.ART_DIRECTOR: "Creative Leadership",
    Role.DESIGNER: "Creative",
    Role.VIDEO_EDITOR: "Post-Production",
    Role.DESIGNER_3D: "3D & VFX",
    Role.DESIGNER_2D: "Design",
    Role.VFX_CGI: "3D & VFX",
    Role.MOTION_GRAPHICS: "Motion & Animation",
    Role.WEB_DEVELOPER: "Technical",
    Role.UI_UX_DESIGNER: "Design",
    Role.ANIMATOR: "Motion & Animation",
    Role.CLIENT: "External",
    Role.CONTENT_CREATOR: "Content",
    Role.TRANSLATOR: "Content",
}


ROLE_DESCRIPTIONS: Final[dict[Role, str]] = {
    Role.ADMIN: "Full system administration access with all permissions",
    Role.PROJECT_MANAGER: "Manages projects, timelines, and team coordination",
    Role.MODERATOR: "Moderates content, approves downloads, and manages users",
    Role.ART_DIRECTOR: "Leads creative direction and visual strategy",
    Role.DESIGNER: "Creates visual designs and graphics",
    Role.VIDEO_EDITOR: "Edits and produces video content",
    Role.DESIGNER_3D: "Creates 3D models, scenes, and assets",
    Role.DESIGNER_2D: "Specializes in 2D graphics and illustrations",
    Role.VFX_CGI: "Creates visual effects and CGI elements",
    Role.MOTION_GRAPHICS: "Designs animated graphics and motion content",
    Role.WEB_DEVELOPER: "Develops and maintains web applications",
    Role.UI_UX_DESIGNER: "Designs user interfaces and user experiences",
    Role.ANIMATOR: "Creates character and object animations",
    Role.CLIENT: "External client with limited viewing access",
    Role.CONTENT_CREATOR: "Creates and manages digital content",
    Role.TRANSLATOR: "Translates content into multiple languages",
}


_PERMISSION_BY_VALUE: Final[dict[str, Permission]] = {p.value: p for p in Permission}
_CATEGORY_BY_PERMISSION: Final[dict[Permission, str]] = {
    permission: key
    for key, category in PERMISSION_CATEGORIES.items()
    for permission in category.permissions
}
_PERMISSION_ORDER: Final[dict[Permission, int]] = {p: i for i, p in enumerate(Permission)}


def parse_permission(value: str | Permission) -> Permission | None:
    """Map a wire string or member name to a Permission; unknown -> None."""
    if isinstance(value, Permission):
        return value
    if not isinstance(value, str):
        return None
    permission = _PERMISSION_BY_VALUE.get(value)
    if permission is not None:
        return permission
    return Permission.__members__.get(value)


def parse_permissions(values: Iterable[str | Permission]) -> frozenset[Permission]:
    """Parse many values, silently dropping anything outside the catalog."""
    parsed = (parse_permission(value) for value in values)
    return frozenset(p for p in parsed if p is not None)


def unknown_permissions(values: Iterable[str | Permission]) -> list[str]:
    return [str(value) for value in values if parse_permission(value) is None]


def parse_role(value: str | Role) -> Role | None:
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return None


def sort_permissions(permissions: Iterable[Permission]) -> list[Permission]:
    """Catalog order, deduplicated; keeps stored and displayed sets stable."""
    return sorted(set(permissions), key=_PERMISSION_ORDER.__getitem__)


def category_of(permission: Permission) -> str:
    return _CATEGORY_BY_PERMISSION[permission]


def default_permissions_for(role: Role) -> frozenset[Permission]:
    return DEFAULT_ROLE_PERMISSIONS[role]


def can_manage_user_by_role(actor_role: Role, target_role: Role) -> bool:
    """ADMIN manages everyone, MODERATOR everyone but ADMIN, others nobody."""
    if actor_role == Role.ADMIN:
        return True
    if actor_role == Role.MODERATOR and target_role != Role.ADMIN:
        return True
    return False


def _validate_catalog() -> None:
    """Validate the catalog at import time (fail-fast)."""
    errors = []

    seen: dict[Permission, str] = {}
    for key, category in PERMISSION_CATEGORIES.items():
        for permission in category.permissions:
            if permission in seen:
                errors.append(
                    f"Permission '{permission.value}' is in both '{seen[permission]}' and '{key}'"
                )
            seen[permission] = key

    missing = set(Permission) - set(seen)
    for permission in sorted(missing, key=lambda p: p.value):
        errors.append(f"Permission '{permission.value}' has no category")

    for role in Role:
        if role not in DEFAULT_ROLE_PERMISSIONS:
            errors.append(f"Role '{role.value}' has no default permissions")
        if role not in ROLE_CATEGORIES:
            errors.append(f"Role '{role.value}' has no category")

    if errors:
        raise RuntimeError(
            "Permission catalog validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )


_validate_catalog()
