"""Supabase (PostgREST) charger lookups.

Endpoints:
  - GET /rest/v1/chargers?id=eq.{id}&select=...
  - GET /rest/v1/chargers?select=...&order=id
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from voltwatch._constants import PGRST_NO_ROWS
from voltwatch._transport import Transport
from voltwatch.config import VoltwatchConfig
from voltwatch.exceptions import ChargerNotFoundError, DatastoreError, VoltwatchHttpError, VoltwatchRateLimitError
from voltwatch.models.datastore import ChargerRecord

_logger = logging.getLogger(__name__)

_ENDPOINT = "/chargers"
_SELECT = "id,charger_id,connectors(connector_id,connector_idx,connector_type)"


def _auth_headers(config: VoltwatchConfig) -> dict[str, str]:
    return {
        "apikey": config.supabase_key,
        "authorization": f"Bearer {config.supabase_key}",
    }


def _error_code(body: str) -> str:
    try:
        payload = json.loads(body)
    except (TypeError, json.JSONDecodeError):
        return ""
    if isinstance(payload, dict):
        return str(payload.get("code") or "")
    return ""


async def _query(config: VoltwatchConfig, transport: Transport, params: dict[str, str]) -> list[Any]:
    url = f"{config.supabase_rest_url}{_ENDPOINT}"
    try:
        rows = await transport.get_json(url, headers=_auth_headers(config), params=params, endpoint=_ENDPOINT)
    except VoltwatchRateLimitError:
        raise
    except VoltwatchHttpError as exc:
        code = _error_code(exc.body)
        status = 404 if code == PGRST_NO_ROWS else 500
        raise DatastoreError(str(exc), status_code=status, code=code) from exc

    if not isinstance(rows, list):
        raise DatastoreError(f"Unexpected datastore payload from {_ENDPOINT}: {type(rows).__name__}")
    return rows


def _parse_record(row: Any) -> ChargerRecord:
    try:
        return ChargerRecord.model_validate(row)
    except ValidationError as exc:
        raise DatastoreError(f"Malformed charger row: {exc.error_count()} validation errors") from exc


async def fetch_charger_record(config: VoltwatchConfig, transport: Transport, charger_code: str) -> ChargerRecord:
    """Look up a charger and its registered connectors by public code."""
    rows = await _query(config, transport, {"select": _SELECT, "id": f"eq.{charger_code}"})
    if not rows:
        raise ChargerNotFoundError("Charger not found", endpoint=_ENDPOINT)
    if len(rows) > 1:
        _logger.warning("Datastore returned %d rows for charger %s; using the first", len(rows), charger_code)
    return _parse_record(rows[0])


async def list_charger_records(config: VoltwatchConfig, transport: Transport) -> list[ChargerRecord]:
    """List every charger known to the datastore."""
    rows = await _query(config, transport, {"select": _SELECT, "order": "id"})
    return [_parse_record(row) for row in rows]
