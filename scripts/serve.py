#!/usr/bin/env python3
"""Run the voltwatch HTTP API.

Configuration comes from the same environment variables as
:meth:`voltwatch.VoltwatchConfig.from_env`; set ``VOLTWATCH_ENV=production``
to enable HSTS.

Usage::

    python scripts/serve.py --host 0.0.0.0 --port 8080
"""

from __future__ import annotations

import argparse
import logging
from collections.abc import AsyncIterator

from aiohttp import web

from voltwatch import VoltwatchClient, VoltwatchConfig
from voltwatch.server import create_app


async def _build_app() -> web.Application:
    client = VoltwatchClient(VoltwatchConfig.from_env())
    app = create_app(client)

    async def _client_ctx(app: web.Application) -> AsyncIterator[None]:
        async with client:
            yield

    app.cleanup_ctx.insert(0, _client_ctx)
    return app


def main() -> None:
    parser = argparse.ArgumentParser(description="Serve the voltwatch charger status API")
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind")
    parser.add_argument("--port", type=int, default=8080, help="Port to bind")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    web.run_app(_build_app(), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
