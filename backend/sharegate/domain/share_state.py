"""Pure predicates over share link state.

A link is never stored as "expired": expiry is re-evaluated against the
clock on every read, layered over the stored is_active flag.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Protocol


class ShareLinkState(str, Enum):
    ACTIVE = "ACTIVE"
    REVOKED = "REVOKED"
    EXPIRED = "EXPIRED"


class DenialReason(str, Enum):
    REVOKED = "revoked"
    EXPIRED = "expired"
    LIMIT_REACHED = "limit reached"
    DOWNLOAD_DISABLED = "download disabled"
    PASSWORD_REQUIRED = "password required"
    INCORRECT_PASSWORD = "incorrect password"
    TOO_MANY_ATTEMPTS = "too many attempts"


DENIAL_MESSAGES: dict[DenialReason, str] = {
    DenialReason.REVOKED: "This share link has been deactivated",
    DenialReason.EXPIRED: "This share link has expired",
    DenialReason.LIMIT_REACHED: "Download limit reached for this share link",
    DenialReason.DOWNLOAD_DISABLED: "Downloads are not allowed for this share link",
    DenialReason.PASSWORD_REQUIRED: "Password required",
    DenialReason.INCORRECT_PASSWORD: "Incorrect password",
    DenialReason.TOO_MANY_ATTEMPTS: "Too many attempts, try again later",
}


class _LinkState(Protocol):
    is_active: bool
    expires_at: datetime | None
    max_downloads: int | None
    current_downloads: int
    allow_download: bool


def is_expired(link: _LinkState, now: datetime) -> bool:
    return link.expires_at is not None and link.expires_at <= now


def quota_exhausted(link: _LinkState) -> bool:
    return link.max_downloads is not None and link.current_downloads >= link.max_downloads


def state_of(link: _LinkState, now: datetime) -> ShareLinkState:
    if is_expired(link, now):
        return ShareLinkState.EXPIRED
    if not link.is_active:
        return ShareLinkState.REVOKED
    return ShareLinkState.ACTIVE


def access_denial(link: _LinkState, now: datetime) -> DenialReason | None:
    """First reason a recipient may not open the link, in check order."""
    if not link.is_active:
        return DenialReason.REVOKED
    if is_expired(link, now):
        return DenialReason.EXPIRED
    if quota_exhausted(link):
        return DenialReason.LIMIT_REACHED
    return None


def can_view(link: _LinkState, now: datetime) -> bool:
    return link.is_active and not is_expired(link, now)


def can_download(link: _LinkState, now: datetime) -> bool:
    return can_view(link, now) and link.allow_download and not quota_exhausted(link)
