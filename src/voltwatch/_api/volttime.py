"""VoltTime charger endpoint.

Endpoint:
  - GET /teams/{team_id}/chargers/{charger_id}
"""

from __future__ import annotations

import logging

from voltwatch._transport import Transport
from voltwatch.config import VoltwatchConfig
from voltwatch.exceptions import (
    ChargerNotFoundError,
    VoltwatchHttpError,
    VoltwatchTransportError,
    VoltwatchValidationError,
)
from voltwatch.models.volttime import VoltTimeCharger

_logger = logging.getLogger(__name__)


def _auth_headers(config: VoltwatchConfig) -> dict[str, str]:
    return {"authorization": f"Bearer {config.volttime_api_key}"}


async def fetch_charger(config: VoltwatchConfig, transport: Transport, charger_id: str) -> VoltTimeCharger:
    """Fetch a single charger with its connectors from VoltTime."""
    if not charger_id:
        raise VoltwatchValidationError("Charger ID is required", field="charger_id")

    endpoint = f"/teams/{config.volttime_team_id}/chargers/{charger_id}"
    url = f"{config.volttime_base_url.rstrip('/')}{endpoint}"
    try:
        body = await transport.get_json(url, headers=_auth_headers(config), endpoint=endpoint)
    except VoltwatchHttpError as exc:
        if exc.status_code == 404:
            raise ChargerNotFoundError(f"Charger {charger_id} not found at VoltTime", endpoint=endpoint) from exc
        raise

    if not isinstance(body, dict) or not isinstance(body.get("data"), dict):
        raise VoltwatchTransportError(f"Missing 'data' object from {endpoint}", endpoint=endpoint)

    charger = VoltTimeCharger.model_validate(body)
    if charger.deprecation:
        _logger.warning("VoltTime deprecation notice for %s: %s", endpoint, charger.deprecation)
    _logger.debug(
        "VoltTime charger %s connection=%s connectors=%d",
        charger_id,
        charger.connection_status,
        len(charger.connectors),
    )
    return charger
