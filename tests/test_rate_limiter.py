from __future__ import annotations

import logging

import pytest

from voltwatch.ratelimit.limiter import (
    RATE_LIMIT_CONFIGS,
    RateLimitClass,
    RateLimitConfig,
    RateLimiter,
    apply_rate_limit,
    classify_request,
    client_ip,
    rate_limit_headers,
)


class _Clock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_configured_quotas() -> None:
    assert RATE_LIMIT_CONFIGS[RateLimitClass.CHARGER_PUBLIC].max_requests == 60
    assert RATE_LIMIT_CONFIGS[RateLimitClass.API_GENERAL].max_requests == 30
    assert RATE_LIMIT_CONFIGS[RateLimitClass.API_AUTHENTICATED].max_requests == 120
    assert RATE_LIMIT_CONFIGS[RateLimitClass.API_ADMIN].max_requests == 10
    assert all(config.window == 60.0 for config in RATE_LIMIT_CONFIGS.values())


def test_allows_up_to_max_then_rejects() -> None:
    clock = _Clock()
    limiter = RateLimiter(clock=clock)
    config = RateLimitConfig(window=60.0, max_requests=3)

    results = [limiter.check_limit("k", config) for _ in range(4)]

    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.count for r in results] == [1, 2, 3, 4]
    assert results[-1].retry_after == 60
    assert results[0].retry_after is None
    assert all(r.reset_time == 1_060.0 for r in results)


def test_retry_after_rounds_up() -> None:
    clock = _Clock()
    limiter = RateLimiter(clock=clock)
    config = RateLimitConfig(window=60.0, max_requests=1)
    limiter.check_limit("k", config)

    clock.now += 30.5
    result = limiter.check_limit("k", config)

    assert result.allowed is False
    assert result.retry_after == 30


def test_window_resets() -> None:
    clock = _Clock()
    limiter = RateLimiter(clock=clock)
    config = RateLimitConfig(window=60.0, max_requests=1)
    limiter.check_limit("k", config)
    assert limiter.check_limit("k", config).allowed is False

    clock.now += 60.0
    result = limiter.check_limit("k", config)

    assert result.allowed is True
    assert result.count == 1
    assert result.reset_time == 1_120.0


def test_keys_are_independent() -> None:
    limiter = RateLimiter(clock=_Clock())
    config = RateLimitConfig(window=60.0, max_requests=1)
    limiter.check_limit("a", config)

    assert limiter.check_limit("b", config).allowed is True


def test_lru_eviction_forgets_oldest_key() -> None:
    limiter = RateLimiter(max_entries=2, clock=_Clock())
    config = RateLimitConfig(window=60.0, max_requests=1)
    limiter.check_limit("a", config)
    limiter.check_limit("b", config)
    limiter.check_limit("c", config)

    assert len(limiter) == 2
    assert limiter.check_limit("a", config).allowed is True


def test_sweep_removes_expired_entries() -> None:
    clock = _Clock()
    limiter = RateLimiter(clock=clock)
    limiter.check_limit("short", RateLimitConfig(window=10.0, max_requests=5))
    limiter.check_limit("long", RateLimitConfig(window=100.0, max_requests=5))

    clock.now += 10.0
    assert limiter.sweep() == 1
    assert len(limiter) == 1


def test_fails_open_on_internal_error(caplog: pytest.LogCaptureFixture) -> None:
    calls = 0

    def _broken_clock() -> float:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("clock exploded")
        return 500.0

    limiter = RateLimiter(clock=_broken_clock)
    with caplog.at_level(logging.WARNING, logger="voltwatch.ratelimit.limiter"):
        result = limiter.check_limit("k", RateLimitConfig(window=60.0, max_requests=1))

    assert result.allowed is True
    assert "allowing request" in caplog.text


@pytest.mark.parametrize(
    "path, authenticated, expected",
    [
        ("/api/charger/ABCDEFGH", False, RateLimitClass.CHARGER_PUBLIC),
        ("/api/chargers", True, RateLimitClass.CHARGER_PUBLIC),
        ("/api/admin/users", True, RateLimitClass.API_ADMIN),
        ("/api/profile", True, RateLimitClass.API_AUTHENTICATED),
        ("/api/profile", False, RateLimitClass.API_GENERAL),
    ],
)
def test_classify_request(path: str, authenticated: bool, expected: str) -> None:
    assert classify_request(path, authenticated) == expected


def test_client_ip_priority() -> None:
    headers = {
        "x-forwarded-for": "203.0.113.7, 10.0.0.1",
        "x-real-ip": "198.51.100.2",
        "cf-connecting-ip": "192.0.2.9",
    }
    assert client_ip(headers) == "203.0.113.7"

    del headers["x-forwarded-for"]
    assert client_ip(headers) == "198.51.100.2"

    del headers["x-real-ip"]
    assert client_ip(headers) == "192.0.2.9"

    assert client_ip({}) == "unknown"


def test_rate_limit_headers() -> None:
    clock = _Clock(1_000.5)
    limiter = RateLimiter(clock=clock)
    config = RateLimitConfig(window=60.0, max_requests=2)
    limiter.check_limit("k", config)
    limiter.check_limit("k", config)
    rejected = limiter.check_limit("k", config)

    headers = rate_limit_headers(config, rejected)

    assert headers == {
        "X-RateLimit-Limit": "2",
        "X-RateLimit-Remaining": "0",
        "X-RateLimit-Reset": "1061",
        "X-RateLimit-Window": "60",
        "Retry-After": "60",
    }


def test_apply_rate_limit_keys_by_class_and_ip() -> None:
    limiter = RateLimiter(clock=_Clock())
    headers = {"x-real-ip": "198.51.100.2"}

    for _ in range(10):
        assert apply_rate_limit(limiter, "/api/admin/x", headers).allowed
    decision = apply_rate_limit(limiter, "/api/admin/x", headers)

    assert decision.allowed is False
    assert decision.limit_class == RateLimitClass.API_ADMIN
    assert decision.message == "Too many admin requests. Please try again later."
    assert decision.headers["X-RateLimit-Remaining"] == "0"
    # Another class for the same client has its own window.
    assert apply_rate_limit(limiter, "/api/charger/ABCDEFGH", headers).allowed


def test_unconfigured_class_is_unlimited() -> None:
    limiter = RateLimiter(clock=_Clock())
    decision = apply_rate_limit(limiter, "/api/other", {}, configs={})

    assert decision.allowed is True
    assert decision.headers == {}
    assert len(limiter) == 0


@pytest.mark.asyncio
async def test_sweeper_lifecycle() -> None:
    limiter = RateLimiter(clock=_Clock())
    task = limiter.start_sweeper(300.0)
    assert limiter.start_sweeper(300.0) is task

    await limiter.close()
    assert task.cancelled()
