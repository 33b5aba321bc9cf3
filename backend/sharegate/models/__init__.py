from .base import Base
from .user import User
from .asset import Asset
from .role_template import RoleTemplate
from .share_link import ShareLink
from .share_link_access import ShareLinkAccess
from .audit_log import AuditAction, AuditLog

__all__ = [
    "Base",
    "User",
    "Asset",
    "RoleTemplate",
    "ShareLink",
    "ShareLinkAccess",
    "AuditAction",
    "AuditLog",
]
