"""aiohttp middleware enforcing :mod:`voltwatch.ratelimit.limiter` quotas."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from aiohttp import web

from voltwatch._constants import RATE_LIMIT_EXCEEDED_CODE
from voltwatch.ratelimit.limiter import RATE_LIMIT_CONFIGS, RateLimitConfig, RateLimiter, apply_rate_limit

_logger = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

#: Only paths under this prefix are rate limited.
API_PREFIX = "/api/"


def _is_authenticated(request: web.Request) -> bool:
    return False


def rate_limit_middleware(
    limiter: RateLimiter,
    *,
    is_authenticated: Callable[[web.Request], bool] = _is_authenticated,
    configs: dict[str, RateLimitConfig] | None = None,
) -> Callable[[web.Request, Handler], Awaitable[web.StreamResponse]]:
    """Build a middleware that rejects over-quota API requests with 429.

    Allowed responses (including ``web.HTTPException`` responses raised by
    handlers) carry the ``X-RateLimit-*`` quota headers.
    """
    quota = configs if configs is not None else RATE_LIMIT_CONFIGS

    @web.middleware
    async def _middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        if not request.path.startswith(API_PREFIX):
            return await handler(request)

        decision = apply_rate_limit(
            limiter,
            request.path,
            request.headers,
            is_authenticated=is_authenticated(request),
            configs=quota,
        )
        if not decision.allowed:
            retry_after = decision.result.retry_after if decision.result is not None else None
            return web.json_response(
                {
                    "error": decision.message,
                    "code": RATE_LIMIT_EXCEEDED_CODE,
                    "retryAfter": retry_after,
                },
                status=429,
                headers=decision.headers,
            )

        try:
            response = await handler(request)
        except web.HTTPException as exc:
            exc.headers.update(decision.headers)
            raise
        response.headers.update(decision.headers)
        return response

    return _middleware
