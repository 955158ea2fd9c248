"""HTTP API exposing merged charger status.

Routes
------
``GET /api/charger/{id}``
    Merged status of one charger.
``GET /api/chargers``
    Every charger registered in the datastore.

Every response carries the security headers; ``/api/`` responses are
additionally rate limited per client address.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from aiohttp import web

from voltwatch.client import VoltwatchClient
from voltwatch.exceptions import DatastoreError, VoltwatchHttpError, VoltwatchTransportError, VoltwatchValidationError
from voltwatch.ratelimit.limiter import RateLimiter
from voltwatch.ratelimit.middleware import rate_limit_middleware

_logger = logging.getLogger(__name__)

CLIENT_KEY: web.AppKey[VoltwatchClient] = web.AppKey("voltwatch_client", VoltwatchClient)
LIMITER_KEY: web.AppKey[RateLimiter] = web.AppKey("voltwatch_rate_limiter", RateLimiter)

VALIDATION_ERROR_CODE = "VALIDATION_ERROR"

_CONTENT_SECURITY_POLICY = "; ".join(
    (
        "default-src 'self'",
        "script-src 'self'",
        "style-src 'self' 'unsafe-inline'",
        "img-src 'self' data: blob: https:",
        "connect-src 'self' https://*.supabase.co wss://*.supabase.co",
        "frame-ancestors 'none'",
        "base-uri 'self'",
        "form-action 'self'",
        "object-src 'none'",
    )
)

_SECURITY_HEADERS: dict[str, str] = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "origin-when-cross-origin",
    "X-XSS-Protection": "1; mode=block",
    "X-DNS-Prefetch-Control": "on",
    "Content-Security-Policy": _CONTENT_SECURITY_POLICY,
}
_HSTS = "max-age=31536000; includeSubDomains; preload"

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def security_headers_middleware(
    *,
    production: bool = False,
) -> Callable[[web.Request, Handler], Awaitable[web.StreamResponse]]:
    headers = dict(_SECURITY_HEADERS)
    if production:
        headers["Strict-Transport-Security"] = _HSTS

    @web.middleware
    async def _middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            exc.headers.update(headers)
            raise
        response.headers.update(headers)
        return response

    return _middleware


def _error_response(exc: Exception) -> web.Response:
    if isinstance(exc, VoltwatchValidationError):
        return web.json_response({"error": str(exc), "code": VALIDATION_ERROR_CODE}, status=400)
    if isinstance(exc, VoltwatchHttpError) and exc.status_code is not None:
        return web.json_response({"error": str(exc)}, status=exc.status_code)
    if isinstance(exc, DatastoreError):
        return web.json_response({"error": str(exc)}, status=exc.status_code)
    if isinstance(exc, VoltwatchTransportError):
        return web.json_response({"error": str(exc)}, status=502)
    return web.json_response({"error": "Internal server error"}, status=500)


async def get_charger(request: web.Request) -> web.Response:
    client = request.app[CLIENT_KEY]
    charger_id = request.match_info["id"]
    try:
        charger = await client.get_charger_status(charger_id)
    except Exception as exc:
        if isinstance(exc, VoltwatchValidationError):
            _logger.info("Rejected charger id %r: %s", charger_id, exc)
        else:
            _logger.error("Error fetching charger %s: %s", charger_id, exc, exc_info=True)
        return _error_response(exc)
    return web.json_response(charger.model_dump(mode="json"))


async def list_chargers(request: web.Request) -> web.Response:
    client = request.app[CLIENT_KEY]
    try:
        records = await client.list_chargers()
    except Exception as exc:
        _logger.error("Error listing chargers: %s", exc, exc_info=True)
        return _error_response(exc)
    chargers = [record.model_dump(mode="json") for record in records]
    return web.json_response({"chargers": chargers, "count": len(chargers)})


def create_app(
    client: VoltwatchClient,
    *,
    limiter: RateLimiter | None = None,
    is_authenticated: Callable[[web.Request], bool] | None = None,
    production: bool | None = None,
    sweep_interval: float | None = None,
) -> web.Application:
    """Build the API application around an already-entered *client*.

    ``production`` and ``sweep_interval`` default to the client's
    configuration. The limiter's sweep runs for the lifetime of the app.
    """
    config = client.config
    if limiter is None:
        limiter = RateLimiter(config.rate_limit_max_entries)
    if production is None:
        production = config.production
    interval = sweep_interval if sweep_interval is not None else config.rate_limit_sweep_interval

    middlewares = [security_headers_middleware(production=production)]
    if is_authenticated is not None:
        middlewares.append(rate_limit_middleware(limiter, is_authenticated=is_authenticated))
    else:
        middlewares.append(rate_limit_middleware(limiter))

    app = web.Application(middlewares=middlewares)
    app[CLIENT_KEY] = client
    app[LIMITER_KEY] = limiter

    async def _sweeper(app: web.Application) -> AsyncIterator[None]:
        app[LIMITER_KEY].start_sweeper(interval)
        yield
        await app[LIMITER_KEY].close()

    app.cleanup_ctx.append(_sweeper)
    app.router.add_get("/api/charger/{id}", get_charger)
    app.router.add_get("/api/chargers", list_chargers)
    return app
