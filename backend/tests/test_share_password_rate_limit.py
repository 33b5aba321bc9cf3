import pytest

from sharegate.application.share_password_rate_limit import (
    RateLimitExceededError,
    SoftRateLimiter,
    ensure_not_limited,
    make_password_key,
)


def test_limits_after_max_failures():
    limiter = SoftRateLimiter(max_attempts=3, window_seconds=60)
    key = make_password_key("token-a", "10.0.0.1")

    for i in range(3):
        assert limiter.is_limited(key, now=100.0 + i) is False
        limiter.record_failure(key, now=100.0 + i)

    assert limiter.is_limited(key, now=103.0) is True
    with pytest.raises(RateLimitExceededError):
        ensure_not_limited(limiter, key, now=103.0)


def test_window_slides():
    limiter = SoftRateLimiter(max_attempts=2, window_seconds=10)
    key = make_password_key("token-a", "10.0.0.1")
    limiter.record_failure(key, now=0.0)
    limiter.record_failure(key, now=1.0)

    assert limiter.is_limited(key, now=5.0) is True
    assert limiter.is_limited(key, now=10.5) is False


def test_reset_clears_key():
    limiter = SoftRateLimiter(max_attempts=1, window_seconds=60)
    key = make_password_key("token-a", "10.0.0.1")
    limiter.record_failure(key)

    limiter.reset(key)

    assert limiter.is_limited(key) is False


def test_key_never_contains_raw_token():
    key = make_password_key("super-secret-token", "10.0.0.1")

    assert "super-secret-token" not in key
    assert key.startswith("share-password:10.0.0.1:")


def test_keys_differ_per_ip_and_token():
    assert make_password_key("a", "1.1.1.1") != make_password_key("a", "2.2.2.2")
    assert make_password_key("a", "1.1.1.1") != make_password_key("b", "1.1.1.1")


def test_missing_ip_falls_back_to_token_scoped_bucket():
    key = make_password_key("token-a", None)

    assert key.startswith("share-password:unknown-ip-")


def test_empty_token_is_rejected():
    with pytest.raises(ValueError):
        make_password_key("", "10.0.0.1")


def test_reserve_counts_the_attempt_up_front():
    limiter = SoftRateLimiter(max_attempts=2, window_seconds=60)
    key = make_password_key("token-a", "10.0.0.1")

    limiter.reserve(key, now=0.0)
    limiter.reserve(key, now=0.0)

    with pytest.raises(RateLimitExceededError):
        limiter.reserve(key, now=0.0)
    assert limiter.is_limited(key, now=1.0) is True


def test_stale_keys_are_swept():
    limiter = SoftRateLimiter(max_attempts=5, window_seconds=10)
    for i in range(50):
        limiter.record_failure(make_password_key(f"token-{i}", "10.0.0.1"), now=0.0)
    assert len(limiter) == 50

    limiter.record_failure(make_password_key("token-late", "10.0.0.1"), now=30.0)

    assert len(limiter) == 1


def test_key_count_is_capped():
    limiter = SoftRateLimiter(max_attempts=1, window_seconds=60, max_keys=10)
    keys = [make_password_key(f"token-{i}", "10.0.0.1") for i in range(25)]

    for i, key in enumerate(keys):
        limiter.record_failure(key, now=float(i))

    assert len(limiter) <= 10
    assert limiter.is_limited(keys[-1], now=30.0) is True
    assert limiter.is_limited(keys[0], now=30.0) is False
