"""Per-client rate limiting for the voltwatch HTTP API."""

from voltwatch.ratelimit.limiter import (
    RATE_LIMIT_CONFIGS,
    RateLimitClass,
    RateLimitConfig,
    RateLimitDecision,
    RateLimiter,
    RateLimitResult,
    apply_rate_limit,
    classify_request,
    client_ip,
    rate_limit_headers,
)
from voltwatch.ratelimit.lru import LRUCache
from voltwatch.ratelimit.middleware import rate_limit_middleware

__all__ = [
    "LRUCache",
    "RATE_LIMIT_CONFIGS",
    "RateLimitClass",
    "RateLimitConfig",
    "RateLimitDecision",
    "RateLimitResult",
    "RateLimiter",
    "apply_rate_limit",
    "classify_request",
    "client_ip",
    "rate_limit_headers",
    "rate_limit_middleware",
]
