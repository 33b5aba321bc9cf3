from fastapi import APIRouter, Depends, Response, status

from ..dependencies import get_current_user, get_request_context, get_role_template_service
from ..domain.context import RequestContext
from ..domain.ports.users import UserData
from ..schemas.role_template import RoleTemplateRead, RoleTemplateUpsert
from ..services.admin.role_template_service import RoleTemplateService, RoleTemplateView

router = APIRouter(prefix="/admin/role-templates", tags=["admin-role-templates"])


def _read(view: RoleTemplateView) -> RoleTemplateRead:
    return RoleTemplateRead(
        id=view.id,
        role=view.role.value,
        permissions=[p.value for p in view.permissions],
        category=view.category,
        description=view.description,
        is_default=view.is_default,
        role_category=view.role_category,
        updated_by_id=view.updated_by_id,
        updated_at=view.updated_at,
    )


@router.get("", response_model=list[RoleTemplateRead])
async def list_role_templates(
    current_user: UserData = Depends(get_current_user),
    service: RoleTemplateService = Depends(get_role_template_service),
    context: RequestContext = Depends(get_request_context),
) -> list[RoleTemplateRead]:
    """One entry per role; roles without a stored template report their defaults."""
    views = await service.list_templates(current_user.id, context=context)
    return [_read(view) for view in views]


@router.get("/{role}", response_model=RoleTemplateRead)
async def get_role_template(
    role: str,
    current_user: UserData = Depends(get_current_user),
    service: RoleTemplateService = Depends(get_role_template_service),
    context: RequestContext = Depends(get_request_context),
) -> RoleTemplateRead:
    return _read(await service.get_template(current_user.id, role, context=context))


@router.put("/{role}", response_model=RoleTemplateRead)
async def upsert_role_template(
    role: str,
    payload: RoleTemplateUpsert,
    current_user: UserData = Depends(get_current_user),
    service: RoleTemplateService = Depends(get_role_template_service),
    context: RequestContext = Depends(get_request_context),
) -> RoleTemplateRead:
    view = await service.upsert_template(
        current_user.id,
        role,
        payload.permissions,
        category=payload.category,
        description=payload.description,
        context=context,
    )
    return _read(view)


@router.delete("/{role}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role_template(
    role: str,
    current_user: UserData = Depends(get_current_user),
    service: RoleTemplateService = Depends(get_role_template_service),
    context: RequestContext = Depends(get_request_context),
) -> Response:
    """Reset a role to its catalog defaults."""
    await service.delete_template(current_user.id, role, context=context)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
