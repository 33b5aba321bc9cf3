import threading
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from .application.share_password_rate_limit import SoftRateLimiter
from .config import settings
from .crud.access_log import AccessLogRepository
from .crud.asset import AssetRepository
from .crud.audit_log import AuditLogRepository
from .crud.role_template import RoleTemplateRepository
from .crud.share_link import ShareLinkRepository
from .crud.user import UserRepository
from .database import get_session, isolated_session
from .domain.context import RequestContext
from .domain.ports.audit import AuditLogStore, AuditLogStoreFactory
from .domain.ports.users import UserData
from .infra.clock import SystemClock
from .infra.object_storage import MinioObjectLocator
from .security.passwords import BcryptPasswordHasher
from .security.token_inspection import ExpiredTokenError, InvalidTokenError, decode_access_token
from .security.tokens import SecretsTokenSource
from .services.admin.permission_service import PermissionResolver
from .services.admin.role_template_service import RoleTemplateService
from .services.admin.user_permission_service import UserPermissionService
from .services.audit.audit_log_service import AuditLogService
from .services.audit.audit_service import AuditEmitter
from .services.sharing.share_link_service import ShareLinkManager

bearer_scheme = HTTPBearer(auto_error=False)

CLIENT_IP_HEADERS = ("x-real-ip", "cf-connecting-ip", "true-client-ip")
UNKNOWN_CLIENT_IP = "unknown"

_object_locator: MinioObjectLocator | None = None
_object_locator_lock = threading.Lock()
_share_password_limiter: SoftRateLimiter | None = None
_share_password_limiter_lock = threading.Lock()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


def get_client_ip(request: Request) -> str:
    """First hop of x-forwarded-for, then the single-value proxy headers."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    for header in CLIENT_IP_HEADERS:
        value = request.headers.get(header)
        if value and value.strip():
            return value.strip()
    if request.client is not None and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT_IP


def get_request_context(request: Request) -> RequestContext:
    return RequestContext(
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer"),
    )


def get_audit_store_factory() -> AuditLogStoreFactory:
    @asynccontextmanager
    async def factory() -> AsyncIterator[AuditLogStore]:
        async with isolated_session() as session:
            yield AuditLogRepository(session)

    return factory


def get_audit_emitter(
    store_factory: AuditLogStoreFactory = Depends(get_audit_store_factory),
) -> AuditEmitter:
    return AuditEmitter(store_factory)


def get_permission_resolver(
    db: AsyncSession = Depends(get_db),
    audit: AuditEmitter = Depends(get_audit_emitter),
) -> PermissionResolver:
    return PermissionResolver(UserRepository(db), RoleTemplateRepository(db), audit)


def get_user_permission_service(
    db: AsyncSession = Depends(get_db),
    resolver: PermissionResolver = Depends(get_permission_resolver),
    audit: AuditEmitter = Depends(get_audit_emitter),
) -> UserPermissionService:
    return UserPermissionService(UserRepository(db), resolver, audit)


def get_role_template_service(
    db: AsyncSession = Depends(get_db),
    resolver: PermissionResolver = Depends(get_permission_resolver),
    audit: AuditEmitter = Depends(get_audit_emitter),
) -> RoleTemplateService:
    return RoleTemplateService(RoleTemplateRepository(db), resolver, audit)


def get_audit_log_service(
    db: AsyncSession = Depends(get_db),
    resolver: PermissionResolver = Depends(get_permission_resolver),
) -> AuditLogService:
    return AuditLogService(AuditLogRepository(db), resolver)


def get_object_locator() -> MinioObjectLocator:
    global _object_locator

    if _object_locator is not None:
        return _object_locator

    with _object_locator_lock:
        if _object_locator is None:
            _object_locator = MinioObjectLocator.from_settings(settings)

    return _object_locator


def get_share_password_rate_limiter() -> SoftRateLimiter:
    """One limiter per process, shared by every request."""
    global _share_password_limiter

    if _share_password_limiter is not None:
        return _share_password_limiter

    with _share_password_limiter_lock:
        if _share_password_limiter is None:
            _share_password_limiter = SoftRateLimiter(
                max_attempts=settings.share_password_max_attempts,
                window_seconds=settings.share_password_window_seconds,
            )

    return _share_password_limiter


def get_share_link_manager(
    db: AsyncSession = Depends(get_db),
    resolver: PermissionResolver = Depends(get_permission_resolver),
    audit: AuditEmitter = Depends(get_audit_emitter),
    locator: MinioObjectLocator = Depends(get_object_locator),
    rate_limiter: SoftRateLimiter = Depends(get_share_password_rate_limiter),
) -> ShareLinkManager:
    return ShareLinkManager(
        links=ShareLinkRepository(db),
        assets=AssetRepository(db),
        access_logs=AccessLogRepository(db),
        resolver=resolver,
        audit=audit,
        hasher=BcryptPasswordHasher(rounds=settings.share_password_bcrypt_rounds),
        tokens=SecretsTokenSource(),
        locator=locator,
        clock=SystemClock(),
        rate_limiter=rate_limiter,
        share_base_url=settings.share_base_url,
        url_ttl_seconds=settings.share_url_ttl_seconds,
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> UserData:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated"
        )

    try:
        claims = decode_access_token(credentials.credentials)
    except ExpiredTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has expired"
        ) from None
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
        ) from None

    user = await UserRepository(db).get(claims.user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found"
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="User is inactive"
        )

    return user
