from fastapi import APIRouter

from . import audit_logs, permissions, public_share, role_templates, share_links

router = APIRouter()

_admin_routers = [
    permissions.router,
    role_templates.router,
    audit_logs.router,
]

_share_routers = [
    share_links.router,
    public_share.router,
]

for _router in [*_admin_routers, *_share_routers]:
    router.include_router(_router)
