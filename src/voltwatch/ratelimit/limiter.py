"""Fixed-window, per-client rate limiting for the HTTP API.

Each (class, client address) key gets a window that opens on its first
request. Requests are counted until the window's reset time; the request
that pushes the count past the class maximum and every later one in the
same window are rejected.

The limiter is an availability aid, not a security boundary: any internal
failure allows the request.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import math
import time
from collections.abc import Callable, Mapping
from enum import StrEnum

from voltwatch._constants import (
    CLIENT_IP_HEADERS,
    RATE_LIMIT_MAX_ENTRIES,
    RATE_LIMIT_SWEEP_INTERVAL,
    UNKNOWN_CLIENT_IP,
)
from voltwatch.ratelimit.lru import LRUCache

_logger = logging.getLogger(__name__)


class RateLimitClass(StrEnum):
    CHARGER_PUBLIC = "charger-public"
    API_GENERAL = "api-general"
    API_AUTHENTICATED = "api-authenticated"
    API_ADMIN = "api-admin"


@dataclasses.dataclass(frozen=True, slots=True)
class RateLimitConfig:
    """Quota of one rate limit class.

    ``window`` is in seconds.
    """

    window: float
    max_requests: int
    message: str = "Too many requests"


RATE_LIMIT_CONFIGS: dict[str, RateLimitConfig] = {
    RateLimitClass.CHARGER_PUBLIC: RateLimitConfig(
        window=60.0,
        max_requests=60,
        message="Too many requests to charger endpoints. Please try again later.",
    ),
    RateLimitClass.API_GENERAL: RateLimitConfig(
        window=60.0,
        max_requests=30,
        message="Too many API requests. Please try again later.",
    ),
    RateLimitClass.API_AUTHENTICATED: RateLimitConfig(
        window=60.0,
        max_requests=120,
        message="Too many requests. Please try again later.",
    ),
    RateLimitClass.API_ADMIN: RateLimitConfig(
        window=60.0,
        max_requests=10,
        message="Too many admin requests. Please try again later.",
    ),
}


@dataclasses.dataclass(slots=True)
class RateLimitEntry:
    count: int
    reset_time: float
    first_request: float


@dataclasses.dataclass(frozen=True, slots=True)
class RateLimitResult:
    """Outcome of one :meth:`RateLimiter.check_limit` call.

    ``reset_time`` is an epoch timestamp in seconds; ``retry_after`` is
    whole seconds until reset and is only set on rejection.
    """

    allowed: bool
    count: int
    reset_time: float
    retry_after: int | None = None


class RateLimiter:
    """In-memory fixed-window limiter bounded by an LRU cache.

    Parameters
    ----------
    max_entries
        Keys tracked at once. The least recently used key is evicted when
        a new one arrives at capacity, which forgets its window.
    clock
        Returns the current epoch time in seconds.
    """

    def __init__(
        self,
        max_entries: int = RATE_LIMIT_MAX_ENTRIES,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._entries: LRUCache[str, RateLimitEntry] = LRUCache(max_entries)
        self._clock = clock
        self._sweeper: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._entries)

    def check_limit(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        """Count one request for *key* and decide whether it is allowed.

        Never raises: on an internal error the request is allowed.
        """
        try:
            return self._check(key, config)
        except Exception:
            _logger.warning("Rate limiter failed for %s, allowing request", key, exc_info=True)
            return RateLimitResult(allowed=True, count=0, reset_time=self._safe_now() + config.window)

    def _check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        now = self._clock()
        entry = self._entries.get(key)

        if entry is None or now >= entry.reset_time:
            entry = RateLimitEntry(count=1, reset_time=now + config.window, first_request=now)
            self._entries.set(key, entry)
            return RateLimitResult(allowed=True, count=1, reset_time=entry.reset_time)

        entry.count += 1
        self._entries.set(key, entry)

        if entry.count > config.max_requests:
            return RateLimitResult(
                allowed=False,
                count=entry.count,
                reset_time=entry.reset_time,
                retry_after=math.ceil(entry.reset_time - now),
            )
        return RateLimitResult(allowed=True, count=entry.count, reset_time=entry.reset_time)

    def _safe_now(self) -> float:
        try:
            return self._clock()
        except Exception:
            return time.time()

    def sweep(self) -> int:
        """Drop every entry whose window has ended; returns how many."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now >= entry.reset_time]
        for key in expired:
            self._entries.delete(key)
        if expired:
            _logger.debug("Rate limiter swept %d expired entries", len(expired))
        return len(expired)

    def start_sweeper(self, interval: float = RATE_LIMIT_SWEEP_INTERVAL) -> asyncio.Task[None]:
        """Run :meth:`sweep` every *interval* seconds on the running loop."""
        if self._sweeper is not None and not self._sweeper.done():
            return self._sweeper
        self._sweeper = asyncio.get_running_loop().create_task(
            self._sweep_forever(interval),
            name="voltwatch-rate-limit-sweep",
        )
        return self._sweeper

    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                self.sweep()
            except Exception:
                _logger.exception("Rate limiter sweep failed")

    async def close(self) -> None:
        """Stop the sweeper and forget every entry."""
        sweeper, self._sweeper = self._sweeper, None
        if sweeper is not None and not sweeper.done():
            sweeper.cancel()
            try:
                await sweeper
            except asyncio.CancelledError:
                pass
        self._entries.clear()


def client_ip(headers: Mapping[str, str]) -> str:
    """Client address from the proxy headers, or ``"unknown"``.

    Header lookup is case-insensitive when *headers* is (as aiohttp's
    ``CIMultiDictProxy`` is).
    """
    for name in CLIENT_IP_HEADERS:
        value = headers.get(name)
        if not value:
            continue
        first = value.split(",")[0].strip()
        if first:
            return first
    return UNKNOWN_CLIENT_IP


def classify_request(path: str, is_authenticated: bool = False) -> str:
    """Rate limit class of an API request path."""
    if path.startswith("/api/charger"):
        return RateLimitClass.CHARGER_PUBLIC
    if path.startswith("/api/admin"):
        return RateLimitClass.API_ADMIN
    if is_authenticated:
        return RateLimitClass.API_AUTHENTICATED
    return RateLimitClass.API_GENERAL


def rate_limit_headers(config: RateLimitConfig, result: RateLimitResult) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(config.max_requests),
        "X-RateLimit-Remaining": str(max(0, config.max_requests - result.count)),
        "X-RateLimit-Reset": str(math.ceil(result.reset_time)),
        "X-RateLimit-Window": str(math.ceil(config.window)),
    }
    if not result.allowed and result.retry_after is not None:
        headers["Retry-After"] = str(result.retry_after)
    return headers


@dataclasses.dataclass(frozen=True, slots=True)
class RateLimitDecision:
    """Result of :func:`apply_rate_limit`.

    ``config`` and ``result`` are ``None`` when the request's class has no
    configured quota; ``headers`` is then empty.
    """

    allowed: bool
    headers: dict[str, str]
    limit_class: str
    config: RateLimitConfig | None = None
    result: RateLimitResult | None = None

    @property
    def message(self) -> str:
        return self.config.message if self.config is not None else "Too many requests"


def apply_rate_limit(
    limiter: RateLimiter,
    path: str,
    headers: Mapping[str, str],
    *,
    is_authenticated: bool = False,
    configs: Mapping[str, RateLimitConfig] = RATE_LIMIT_CONFIGS,
) -> RateLimitDecision:
    """Classify a request, count it, and build its quota headers."""
    limit_class = classify_request(path, is_authenticated)
    config = configs.get(limit_class)
    if config is None:
        return RateLimitDecision(allowed=True, headers={}, limit_class=limit_class)

    key = f"{limit_class}:{client_ip(headers)}"
    result = limiter.check_limit(key, config)
    if not result.allowed:
        _logger.info("Rate limit exceeded for %s (%d/%d)", key, result.count, config.max_requests)
    return RateLimitDecision(
        allowed=result.allowed,
        headers=rate_limit_headers(config, result),
        limit_class=limit_class,
        config=config,
        result=result,
    )
