"""
Throttling of wrong share link passwords.

Failures are counted per (client ip, share token) over a sliding window.
State lives in process memory only, so limits are per worker.

A password check takes its slot with ``reserve`` before the hash comparison
suspends, and gives it back with ``reset`` on success. Concurrent guesses on
one key therefore never compare more than ``max_attempts`` hashes per window.
"""
import hashlib
import time
from collections import deque

TOKEN_HASH_LENGTH = 64
IP_FALLBACK_LENGTH = 8
MAX_TRACKED_KEYS = 10_000


class RateLimitExceededError(Exception):
    pass


class SoftRateLimiter:
    def __init__(
        self,
        max_attempts: int,
        window_seconds: int,
        *,
        max_keys: int = MAX_TRACKED_KEYS,
    ) -> None:
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.max_keys = max_keys
        self._failures: dict[str, deque[float]] = {}
        self._last_sweep: float | None = None

    def __len__(self) -> int:
        return len(self._failures)

    def _recent(self, key: str, now: float) -> deque[float]:
        failures = self._failures.get(key)
        if failures is None:
            return deque()
        oldest_allowed = now - self.window_seconds
        while failures and failures[0] < oldest_allowed:
            failures.popleft()
        if not failures:
            del self._failures[key]
        return failures

    def _sweep(self, now: float) -> None:
        if (
            self._last_sweep is not None
            and now - self._last_sweep < self.window_seconds
            and len(self._failures) < self.max_keys
        ):
            return
        self._last_sweep = now
        oldest_allowed = now - self.window_seconds
        stale = [key for key, failures in self._failures.items() if failures[-1] < oldest_allowed]
        for key in stale:
            del self._failures[key]
        # still full: forget the keys touched longest ago
        while len(self._failures) >= self.max_keys:
            del self._failures[next(iter(self._failures))]

    def is_limited(self, key: str, now: float | None = None) -> bool:
        at = time.time() if now is None else now
        return len(self._recent(key, at)) >= self.max_attempts

    def record_failure(self, key: str, now: float | None = None) -> None:
        at = time.time() if now is None else now
        self._sweep(at)
        failures = self._recent(key, at)
        failures.append(at)
        # re-insert so dict order tracks recency for the size cap
        self._failures.pop(key, None)
        self._failures[key] = failures

    def reserve(self, key: str, now: float | None = None) -> None:
        """Count an attempt up front; raises when the window is already full."""
        at = time.time() if now is None else now
        if self.is_limited(key, now=at):
            raise RateLimitExceededError(key)
        self.record_failure(key, now=at)

    def reset(self, key: str) -> None:
        self._failures.pop(key, None)


def make_password_key(token: str, client_ip: str | None) -> str:
    """Bucket key for one share token seen from one client address.

    Only a digest of the token is stored. Requests with no known address get
    a bucket of their own per token rather than one shared by everybody.
    """
    if not token:
        raise ValueError("token is required for rate limiting")
    digest = hashlib.sha256(token.encode()).hexdigest()[:TOKEN_HASH_LENGTH]
    source = client_ip or "unknown-ip-" + digest[:IP_FALLBACK_LENGTH]
    return f"share-password:{source}:{digest}"


def ensure_not_limited(limiter: SoftRateLimiter, key: str, now: float | None = None) -> None:
    if limiter.is_limited(key, now=now):
        raise RateLimitExceededError(key)
