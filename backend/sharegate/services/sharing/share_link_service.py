"""
Share link manager - bearer-token links to a single asset.

A link is a capability: whoever holds the token may view the asset, and
download it when the link allows downloads. Gates are evaluated on every
call, against the clock, in this order:

    unknown token -> revoked -> expired -> download quota exhausted

Downloads additionally require a correct password (re-supplied on every
call, nothing is "unlocked" server side) and allow_download. The quota check
and both download counters move in one conditional UPDATE at the store, so
concurrent requesters can never push current_downloads past max_downloads.

Storage URLs handed out here are minted per request and never persisted.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ...application.share_password_rate_limit import (
    RateLimitExceededError,
    SoftRateLimiter,
    ensure_not_limited,
    make_password_key,
)
from ...auth.permissions import Permission
from ...domain.context import EMPTY_CONTEXT, RequestContext
from ...domain.invariants import validate_download_counters
from ...domain.ports.access_logs import AccessLogData, AccessLogStore, AccessType
from ...domain.ports.assets import AssetData, AssetStore
from ...domain.ports.collaborators import Clock, ObjectLocator, PasswordHasher, TokenSource
from ...domain.ports.share_links import ShareLinkData, ShareLinkFilter, ShareLinkStore
from ...domain.share_state import (
    DENIAL_MESSAGES,
    DenialReason,
    access_denial,
    is_expired,
    state_of,
)
from ...errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionError,
    ShareLinkDenied,
    ShareLinkPasswordRejected,
    ValidationError,
)
from ...models.audit_log import AuditAction
from ...security.passwords import password_too_long
from ..admin.permission_service import PermissionResolver
from ..audit.audit_service import AuditEmitter

logger = logging.getLogger("sharegate.sharing")

MAX_TOKEN_ATTEMPTS = 5
UNKNOWN_IP = "unknown"
TOP_COUNTRIES_LIMIT = 5
MAX_PAGE_SIZE = 100

# Which stored object to preview, per asset type, in order of preference.
PREVIEW_KEY_PREFERENCE: dict[str, tuple[str, ...]] = {
    "IMAGE": ("preview_key", "file_key"),
    "VIDEO": ("preview_key", "file_key"),
    "AUDIO": ("file_key",),
    "DOCUMENT": ("file_key",),
    "MODEL_3D": ("thumbnail_key", "file_key"),
    "DESIGN": ("thumbnail_key", "file_key"),
}
FALLBACK_PREVIEW_KEYS = ("file_key", "preview_key", "thumbnail_key")


@dataclass(frozen=True)
class CreatedShareLink:
    link: ShareLinkData
    url: str


@dataclass(frozen=True)
class SharedAssetView:
    link: ShareLinkData
    asset: AssetData
    preview_url: str | None
    thumbnail_url: str | None

    @property
    def requires_password(self) -> bool:
        return self.link.password_hash is not None


@dataclass(frozen=True)
class DownloadLocator:
    url: str
    filename: str
    mime_type: str | None
    file_size: int | None
    expires_in: int


@dataclass(frozen=True)
class ShareLinkStats:
    link_id: uuid.UUID
    view_count: int
    download_count: int
    current_downloads: int
    max_downloads: int | None
    is_active: bool
    is_expired: bool
    accesses_by_type: dict[str, int] = field(default_factory=dict)
    unique_visitors: int = 0
    top_countries: list[tuple[str, int]] = field(default_factory=list)


@dataclass(frozen=True)
class ShareLinkPage:
    items: list[ShareLinkData]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size


def _deny(reason: DenialReason) -> ShareLinkDenied:
    return ShareLinkDenied(DENIAL_MESSAGES[reason], reason=reason.value)


def _reject_password(reason: DenialReason) -> ShareLinkPasswordRejected:
    return ShareLinkPasswordRejected(DENIAL_MESSAGES[reason], reason=reason.value)


def _validate_expires_at(expires_at: datetime | None) -> None:
    if expires_at is not None and expires_at.tzinfo is None:
        raise ValidationError("expires_at must be timezone-aware")


def _validate_max_downloads(max_downloads: int | None) -> None:
    if max_downloads is not None and max_downloads < 1:
        raise ValidationError("max_downloads must be at least 1")


def _validate_password(password: str) -> None:
    if password_too_long(password):
        raise ValidationError("password must be at most 72 bytes")


def _link_snapshot(link: ShareLinkData) -> dict[str, Any]:
    return {
        "is_active": link.is_active,
        "has_password": link.password_hash is not None,
        "expires_at": link.expires_at.isoformat() if link.expires_at else None,
        "max_downloads": link.max_downloads,
        "allow_download": link.allow_download,
    }


def _preview_key(asset: AssetData) -> str | None:
    for attr in PREVIEW_KEY_PREFERENCE.get(asset.type, FALLBACK_PREVIEW_KEYS):
        key = getattr(asset, attr, None)
        if key:
            return key
    return None


class ShareLinkManager:
    def __init__(
        self,
        *,
        links: ShareLinkStore,
        assets: AssetStore,
        access_logs: AccessLogStore,
        resolver: PermissionResolver,
        audit: AuditEmitter,
        hasher: PasswordHasher,
        tokens: TokenSource,
        locator: ObjectLocator,
        clock: Clock,
        rate_limiter: SoftRateLimiter,
        share_base_url: str,
        url_ttl_seconds: int = 3600,
    ) -> None:
        self._links = links
        self._assets = assets
        self._access_logs = access_logs
        self._resolver = resolver
        self._audit = audit
        self._hasher = hasher
        self._tokens = tokens
        self._locator = locator
        self._clock = clock
        self._rate_limiter = rate_limiter
        self._share_base_url = share_base_url.rstrip("/")
        self._url_ttl_seconds = url_ttl_seconds

    def share_url(self, token: str) -> str:
        return f"{self._share_base_url}/share/{token}"

    # -- creator side -------------------------------------------------------

    async def _mint_token(self) -> str:
        for _ in range(MAX_TOKEN_ATTEMPTS):
            token = self._tokens.new_token()
            if not await self._links.token_exists(token):
                return token
            logger.warning("share_token_collision")
        raise ConflictError("Could not generate a unique share token")

    async def create(
        self,
        asset_id: uuid.UUID,
        creator_id: uuid.UUID,
        *,
        password: str | None = None,
        expires_at: datetime | None = None,
        max_downloads: int | None = None,
        allow_download: bool = True,
        context: RequestContext = EMPTY_CONTEXT,
    ) -> CreatedShareLink:
        """Issue a new link for an asset.

        Raises:
            NotFoundError: If the asset does not exist
            InvalidStateError: If the asset has no stored file
            ValidationError: On a malformed expiry, quota or password
            ConflictError: If no unused token could be minted
        """
        _validate_expires_at(expires_at)
        _validate_max_downloads(max_downloads)
        if password:
            _validate_password(password)

        asset = await self._assets.get(asset_id)
        if asset is None:
            raise NotFoundError("Asset not found")
        if not asset.file_key:
            raise InvalidStateError("Asset has no file to share")

        password_hash = await self._hasher.hash(password) if password else None

        try:
            token = await self._mint_token()
            link = await self._links.create(
                token=token,
                asset_id=asset_id,
                created_by_id=creator_id,
                password_hash=password_hash,
                expires_at=expires_at,
                max_downloads=max_downloads,
                allow_download=allow_download,
            )
            await self._links.commit()
        except Exception:
            await self._links.rollback()
            raise

        logger.info(
            "share_link_created link_id=%s asset_id=%s creator_id=%s",
            link.id,
            asset_id,
            creator_id,
        )
        await self._audit.emit(
            AuditAction.SHARE_LINK_CREATED,
            actor_id=creator_id,
            entity_type="share_link",
            entity_id=link.id,
            new_values=_link_snapshot(link),
            additional_data={"asset_id": str(asset_id), "asset_name": asset.name},
            context=context,
        )
        return CreatedShareLink(link=link, url=self.share_url(link.token))

    async def _get_owned_link(
        self,
        link_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        context: RequestContext = EMPTY_CONTEXT,
    ) -> ShareLinkData:
        """Load a link the actor created, or any link for admin-equivalents."""
        link = await self._links.get_by_id(link_id)
        if link is None:
            raise NotFoundError("Share link not found")
        if link.created_by_id == actor_id:
            return link

        resolved = await self._resolver.resolve(actor_id)
        if not resolved.is_admin_equivalent:
            logger.warning(
                "share_link_forbidden link_id=%s actor_id=%s", link_id, actor_id
            )
            raise PermissionError("Only the creator or an admin can manage this share link")
        return link

    async def update(
        self,
        link_id: uuid.UUID,
        actor_id: uuid.UUID,
        changes: dict[str, Any],
        *,
        context: RequestContext = EMPTY_CONTEXT,
    ) -> ShareLinkData:
        """Change password, expiry, quota or allow_download of a link.

        An empty password clears password protection.
        """
        allowed = {"password", "expires_at", "max_downloads", "allow_download"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(
                "Unsupported share link fields", details={"fields": sorted(unknown)}
            )

        link = await self._get_owned_link(link_id, actor_id, context=context)
        old_values = _link_snapshot(link)

        values: dict[str, Any] = {}
        if "password" in changes:
            password = changes["password"]
            if password:
                _validate_password(password)
                values["password_hash"] = await self._hasher.hash(password)
            else:
                values["password_hash"] = None
        if "expires_at" in changes:
            _validate_expires_at(changes["expires_at"])
            values["expires_at"] = changes["expires_at"]
        if "max_downloads" in changes:
            max_downloads = changes["max_downloads"]
            _validate_max_downloads(max_downloads)
            if max_downloads is not None and max_downloads < link.current_downloads:
                raise ValidationError(
                    "max_downloads cannot be lower than downloads already served"
                )
            values["max_downloads"] = max_downloads
        if "allow_download" in changes:
            values["allow_download"] = bool(changes["allow_download"])

        if not values:
            return link

        try:
            updated = await self._links.update(link_id, values)
            if updated is None:
                if "max_downloads" in values and await self._links.get_by_id(link_id):
                    # a download committed after the check above
                    raise ValidationError(
                        "max_downloads cannot be lower than downloads already served"
                    )
                raise NotFoundError("Share link not found")
            await self._links.commit()
        except Exception:
            await self._links.rollback()
            raise

        logger.info("share_link_updated link_id=%s actor_id=%s", link_id, actor_id)
        await self._audit.emit(
            AuditAction.SHARE_LINK_UPDATED,
            actor_id=actor_id,
            entity_type="share_link",
            entity_id=link_id,
            old_values=old_values,
            new_values=_link_snapshot(updated),
            context=context,
        )
        return updated

    async def revoke(
        self,
        link_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        context: RequestContext = EMPTY_CONTEXT,
    ) -> ShareLinkData:
        """Deactivate a link. Revoking a revoked link is a silent no-op."""
        link = await self._get_owned_link(link_id, actor_id, context=context)
        if not link.is_active:
            return link

        try:
            updated = await self._links.set_active(link_id, False)
            if updated is None:
                raise NotFoundError("Share link not found")
            await self._links.commit()
        except Exception:
            await self._links.rollback()
            raise

        logger.info("share_link_revoked link_id=%s actor_id=%s", link_id, actor_id)
        await self._audit.emit(
            AuditAction.SHARE_LINK_REVOKED,
            actor_id=actor_id,
            entity_type="share_link",
            entity_id=link_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
            context=context,
        )
        return updated

    async def reactivate(
        self,
        link_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        context: RequestContext = EMPTY_CONTEXT,
    ) -> ShareLinkData:
        """Re-enable a revoked link.

        Raises:
            InvalidStateError: If the link has expired; a new link is needed
        """
        link = await self._get_owned_link(link_id, actor_id, context=context)
        if is_expired(link, self._clock.now()):
            raise InvalidStateError(
                "Cannot reactivate an expired link, create a new one instead"
            )
        if link.is_active:
            return link

        try:
            updated = await self._links.set_active(link_id, True)
            if updated is None:
                raise NotFoundError("Share link not found")
            await self._links.commit()
        except Exception:
            await self._links.rollback()
            raise

        logger.info("share_link_reactivated link_id=%s actor_id=%s", link_id, actor_id)
        await self._audit.emit(
            AuditAction.SHARE_LINK_REACTIVATED,
            actor_id=actor_id,
            entity_type="share_link",
            entity_id=link_id,
            old_values={"is_active": False},
            new_values={"is_active": True},
            context=context,
        )
        return updated

    async def stats(self, link_id: uuid.UUID, actor_id: uuid.UUID) -> ShareLinkStats:
        link = await self._get_owned_link(link_id, actor_id)
        return ShareLinkStats(
            link_id=link.id,
            view_count=link.view_count,
            download_count=link.download_count,
            current_downloads=link.current_downloads,
            max_downloads=link.max_downloads,
            is_active=link.is_active,
            is_expired=is_expired(link, self._clock.now()),
            accesses_by_type=await self._access_logs.count_by_type(link.id),
            unique_visitors=await self._access_logs.distinct_ip_count(link.id),
            top_countries=await self._access_logs.top_countries(
                link.id, limit=TOP_COUNTRIES_LIMIT
            ),
        )

    async def list_access_logs(
        self,
        link_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[AccessLogData], int]:
        if page < 1 or limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}")
        link = await self._get_owned_link(link_id, actor_id)
        return await self._access_logs.list_for_link(
            link.id, offset=(page - 1) * limit, limit=limit
        )

    async def list_for_asset(
        self, asset_id: uuid.UUID, actor_id: uuid.UUID
    ) -> list[ShareLinkData]:
        """Links of an asset: all of them for admins, otherwise the actor's own."""
        if await self._assets.get(asset_id) is None:
            raise NotFoundError("Asset not found")
        links = await self._links.list_by_asset(asset_id)
        resolved = await self._resolver.resolve(actor_id)
        if resolved.is_admin_equivalent:
            return links
        return [link for link in links if link.created_by_id == actor_id]

    async def list_all(
        self,
        actor_id: uuid.UUID,
        filters: ShareLinkFilter,
        *,
        page: int = 1,
        page_size: int = 25,
        context: RequestContext = EMPTY_CONTEXT,
    ) -> ShareLinkPage:
        await self._resolver.require_permission(
            actor_id, Permission.ADMIN_FULL_ACCESS, context=context
        )
        if page < 1 or page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise ValidationError(
                f"page must be >= 1 and page_size between 1 and {MAX_PAGE_SIZE}"
            )
        items, total = await self._links.list_filtered(
            filters,
            now=self._clock.now(),
            offset=(page - 1) * page_size,
            limit=page_size,
        )
        return ShareLinkPage(items=items, total=total, page=page, page_size=page_size)

    # -- recipient side -----------------------------------------------------

    async def _get_accessible(self, token: str) -> tuple[ShareLinkData, AssetData]:
        link = await self._links.get_by_token(token)
        if link is None:
            raise NotFoundError("Share link not found")

        reason = access_denial(link, self._clock.now())
        if reason is not None:
            logger.info(
                "share_link_access_denied link_id=%s reason=%s", link.id, reason.value
            )
            raise _deny(reason)

        asset = await self._assets.get(link.asset_id)
        if asset is None:
            raise NotFoundError("Asset not found")
        return link, asset

    async def _presign_or_none(
        self, key: str | None, *, link_id: uuid.UUID
    ) -> str | None:
        if not key:
            return None
        try:
            return await self._locator.presign(key, expires_in=self._url_ttl_seconds)
        except Exception:
            logger.exception("share_preview_presign_failed link_id=%s key=%s", link_id, key)
            return None

    async def resolve_for_access(
        self, token: str, *, context: RequestContext = EMPTY_CONTEXT
    ) -> SharedAssetView:
        """Open a link as a recipient and record the view."""
        link, asset = await self._get_accessible(token)
        now = self._clock.now()

        try:
            await self._links.record_view(link.id, now=now)
            await self._access_logs.append(
                share_link_id=link.id,
                access_type=AccessType.VIEW,
                ip_address=context.ip_address or UNKNOWN_IP,
                user_agent=context.user_agent,
                referrer=context.referrer,
                country=context.country,
            )
            await self._links.commit()
        except Exception:
            await self._links.rollback()
            raise

        preview_url = await self._presign_or_none(_preview_key(asset), link_id=link.id)
        thumbnail_url = await self._presign_or_none(asset.thumbnail_key, link_id=link.id)
        return SharedAssetView(
            link=link,
            asset=asset,
            preview_url=preview_url,
            thumbnail_url=thumbnail_url,
        )

    async def _check_password(
        self, link: ShareLinkData, password: str | None, client_ip: str | None
    ) -> None:
        key = make_password_key(link.token, client_ip)
        now = self._clock.now().timestamp()
        try:
            ensure_not_limited(self._rate_limiter, key, now=now)
            if not password:
                raise _reject_password(DenialReason.PASSWORD_REQUIRED)
            # the slot is taken before the hash comparison suspends
            self._rate_limiter.reserve(key, now=now)
        except RateLimitExceededError:
            logger.warning("share_password_rate_limited link_id=%s", link.id)
            raise _deny(DenialReason.TOO_MANY_ATTEMPTS) from None

        if not await self._hasher.verify(password, link.password_hash):
            logger.info("share_password_rejected link_id=%s", link.id)
            raise _reject_password(DenialReason.INCORRECT_PASSWORD)
        self._rate_limiter.reset(key)

    async def verify_password(
        self,
        token: str,
        password: str,
        *,
        context: RequestContext = EMPTY_CONTEXT,
    ) -> bool:
        """Check a password against a link; grants nothing by itself.

        Raises:
            NotFoundError: If the token is unknown
            ValidationError: If the link has no password
            ShareLinkPasswordRejected: On a wrong password
            ShareLinkDenied: After too many failed attempts
        """
        link = await self._links.get_by_token(token)
        if link is None:
            raise NotFoundError("Share link not found")
        if link.password_hash is None:
            raise ValidationError("This share link is not password protected")
        await self._check_password(link, password, context.ip_address)
        return True

    async def get_download_locator(
        self,
        token: str,
        password: str | None = None,
        *,
        context: RequestContext = EMPTY_CONTEXT,
    ) -> DownloadLocator:
        """Consume one download from the link's quota and return a file URL."""
        link, asset = await self._get_accessible(token)
        if link.password_hash is not None:
            await self._check_password(link, password, context.ip_address)
        if not link.allow_download:
            raise _deny(DenialReason.DOWNLOAD_DISABLED)
        if not asset.file_key:
            raise InvalidStateError("Asset has no file to download")

        before_current = link.current_downloads
        before_total = link.download_count
        now = self._clock.now()
        try:
            updated = await self._links.consume_download(link.id, now=now)
            if updated is None:
                # another request took the last download since the checks above
                logger.info("share_download_refused link_id=%s", link.id)
                raise _deny(DenialReason.LIMIT_REACHED)

            validate_download_counters(
                link_id=link.id,
                before_current=before_current,
                before_total=before_total,
                after_current=updated.current_downloads,
                after_total=updated.download_count,
                max_downloads=updated.max_downloads,
            )

            await self._access_logs.append(
                share_link_id=link.id,
                access_type=AccessType.DOWNLOAD,
                ip_address=context.ip_address or UNKNOWN_IP,
                user_agent=context.user_agent,
                referrer=context.referrer,
                country=context.country,
            )
            await self._links.commit()
        except Exception:
            await self._links.rollback()
            raise

        filename = asset.original_name or asset.file_name or asset.name
        url = await self._locator.presign(
            asset.file_key,
            expires_in=self._url_ttl_seconds,
            download=True,
            filename=filename,
        )
        logger.info(
            "share_download_issued link_id=%s downloads=%s/%s state=%s",
            link.id,
            updated.current_downloads,
            updated.max_downloads,
            state_of(updated, now).value,
        )
        return DownloadLocator(
            url=url,
            filename=filename,
            mime_type=asset.mime_type,
            file_size=asset.file_size,
            expires_in=self._url_ttl_seconds,
        )
