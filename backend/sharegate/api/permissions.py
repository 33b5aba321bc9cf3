from uuid import UUID

from fastapi import APIRouter, Depends

from ..auth.permissions import sort_permissions
from ..dependencies import (
    get_current_user,
    get_permission_resolver,
    get_request_context,
    get_user_permission_service,
)
from ..domain.context import RequestContext
from ..domain.ports.users import UserData
from ..schemas.permission import (
    DownloadAccessRead,
    DownloadAccessUpdate,
    PermissionSetRead,
    UserPermissionsRead,
    UserPermissionsUpdate,
)
from ..services.admin.permission_service import PermissionResolver, ResolvedPermissions
from ..services.admin.user_permission_service import (
    UserPermissionService,
    UserPermissionsView,
)

router = APIRouter(tags=["permissions"])


def _permission_set(resolved: ResolvedPermissions) -> PermissionSetRead:
    return PermissionSetRead(
        user_id=resolved.user_id,
        role=resolved.role.value if resolved.role else None,
        role_permissions=[p.value for p in sort_permissions(resolved.role_permissions)],
        additional_permissions=[
            p.value for p in sort_permissions(resolved.additional_permissions)
        ],
        all_permissions=[p.value for p in sort_permissions(resolved.all_permissions)],
        uses_template=resolved.uses_template,
    )


def _user_permissions(view: UserPermissionsView) -> UserPermissionsRead:
    return UserPermissionsRead(
        user_id=view.user_id,
        email=view.email,
        role=view.role,
        permissions=_permission_set(view.permissions),
    )


@router.get("/permissions/me", response_model=PermissionSetRead)
async def get_my_permissions(
    current_user: UserData = Depends(get_current_user),
    resolver: PermissionResolver = Depends(get_permission_resolver),
) -> PermissionSetRead:
    return _permission_set(await resolver.resolve_user(current_user))


@router.get("/admin/users/{user_id}/permissions", response_model=UserPermissionsRead)
async def get_user_permissions(
    user_id: UUID,
    current_user: UserData = Depends(get_current_user),
    service: UserPermissionService = Depends(get_user_permission_service),
    context: RequestContext = Depends(get_request_context),
) -> UserPermissionsRead:
    view = await service.get_user_permissions(current_user.id, user_id, context=context)
    return _user_permissions(view)


@router.put("/admin/users/{user_id}/permissions", response_model=UserPermissionsRead)
async def update_user_permissions(
    user_id: UUID,
    payload: UserPermissionsUpdate,
    current_user: UserData = Depends(get_current_user),
    service: UserPermissionService = Depends(get_user_permission_service),
    context: RequestContext = Depends(get_request_context),
) -> UserPermissionsRead:
    """
    Replace the additional permissions of a user.

    Requires: user:update_permissions, and a role allowed to manage the
    target's role.
    """
    view = await service.update_user_permissions(
        current_user.id, user_id, payload.permissions, context=context
    )
    return _user_permissions(view)


@router.put("/admin/users/{user_id}/download-access", response_model=DownloadAccessRead)
async def set_user_download_access(
    user_id: UUID,
    payload: DownloadAccessUpdate,
    current_user: UserData = Depends(get_current_user),
    service: UserPermissionService = Depends(get_user_permission_service),
    context: RequestContext = Depends(get_request_context),
) -> DownloadAccessRead:
    """Requires: user:update_permissions, same role rules as permission edits."""
    view = await service.set_download_access(
        current_user.id, user_id, payload.can_download_directly, context=context
    )
    return DownloadAccessRead(
        user_id=view.user_id,
        email=view.email,
        role=view.role,
        can_download_directly=view.can_download_directly,
    )
