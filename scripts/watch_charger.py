#!/usr/bin/env python3
"""Watch one charger and print every confirmed status snapshot.

Usage
-----
Set environment variables and run::

    export VOLTTIME_TEAM_ID="..."
    export VOLTTIME_API_KEY="..."
    export SUPABASE_URL="https://xyz.supabase.co"
    export SUPABASE_ANON_KEY="..."
    python scripts/watch_charger.py ABCD-EFGH

Options::

    --interval SECONDS   Base polling interval (default: 30)
    --adaptive           Enable adaptive polling
    --max-retries N      Retries before an error is reported (default: 3)
    --json               Print snapshots as JSON
    --once               Fetch a single snapshot and exit
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from voltwatch import PollingOptions, PollingSnapshot, VoltwatchClient, VoltwatchConfig, VoltwatchError
from voltwatch.models import Charger


def _format(charger: Charger, *, json_mode: bool) -> str:
    if json_mode:
        return json.dumps(charger.model_dump(mode="json"), sort_keys=True)
    connectors = ", ".join(f"#{c.connector_id} {c.type} {c.status}" for c in charger.connectors) or "no connectors"
    return f"{charger.code} [{charger.connection_status}] {charger.status}: {connectors}"


async def main() -> int:
    parser = argparse.ArgumentParser(description="Watch the status of a VoltTime charger")
    parser.add_argument("charger_id", help="Public charger code, with or without the dash")
    parser.add_argument("--interval", type=float, default=30.0, help="Base polling interval in seconds")
    parser.add_argument("--adaptive", action="store_true", help="Enable adaptive polling")
    parser.add_argument("--max-retries", type=int, default=3, help="Retries before an error is reported")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--once", action="store_true", help="Fetch one snapshot and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    config = VoltwatchConfig.from_env()
    async with VoltwatchClient(config) as client:
        try:
            if args.once:
                print(_format(await client.get_charger_status(args.charger_id), json_mode=args.json_mode))
                return 0
            options = PollingOptions(adaptive_polling=args.adaptive, max_retries=args.max_retries)
            engine = await client.watch(args.charger_id, base_interval=args.interval, options=options)
        except VoltwatchError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1

        print(_format(engine.data, json_mode=args.json_mode), flush=True)
        last = engine.data

        def _on_snapshot(snapshot: PollingSnapshot[Charger]) -> None:
            nonlocal last
            if snapshot.error is not None and not snapshot.is_polling:
                print(f"error: {snapshot.error.user_message} ({snapshot.error.message})", file=sys.stderr)
            if snapshot.data is not last:
                last = snapshot.data
                print(_format(snapshot.data, json_mode=args.json_mode), flush=True)

        engine.add_listener(_on_snapshot)
        try:
            await asyncio.Event().wait()
        finally:
            engine.stop()
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)
