"""
Domain invariants for share links.

Checked around state mutations so a breach is reported loudly instead of
drifting silently:
1. Download counters move together - current_downloads and download_count
   are incremented in the same statement.
2. The quota is a ceiling - current_downloads never exceeds max_downloads.
"""

import logging
from typing import Any

logger = logging.getLogger(__name__)


class InvariantViolation(Exception):
    """
    Raised when a domain invariant is violated.

    This is a domain-level error that should be handled explicitly,
    never silently ignored.
    """

    def __init__(self, message: str, *, invariant: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.invariant = invariant
        self.details = details or {}

        logger.error(
            "invariant_violation invariant=%s message=%s details=%s",
            invariant,
            message,
            details,
        )


def validate_download_counters(
    *,
    link_id: Any,
    before_current: int,
    before_total: int,
    after_current: int,
    after_total: int,
    max_downloads: int | None,
) -> None:
    """Both counters advanced by the same amount and the ceiling still holds.

    Other requests may download in between the read and the update, so the
    step can exceed one; it may never differ between the two counters.
    """
    advanced_current = after_current - before_current
    advanced_total = after_total - before_total
    if advanced_current < 1 or advanced_current != advanced_total:
        raise InvariantViolation(
            "Download counters did not advance together",
            invariant="share_link.counters_move_together",
            details={
                "link_id": str(link_id),
                "current_downloads": [before_current, after_current],
                "download_count": [before_total, after_total],
            },
        )
    if max_downloads is not None and after_current > max_downloads:
        raise InvariantViolation(
            f"current_downloads {after_current} exceeds max_downloads {max_downloads}",
            invariant="share_link.quota_ceiling",
            details={"link_id": str(link_id)},
        )
