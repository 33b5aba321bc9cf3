from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RequestContext:
    """Caller metadata carried into access logs and audit entries."""

    ip_address: str | None = None
    user_agent: str | None = None
    referrer: str | None = None
    country: str | None = None


EMPTY_CONTEXT = RequestContext()
