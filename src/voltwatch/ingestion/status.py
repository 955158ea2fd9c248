"""Charger status ingestion.

This module owns the "datastore lookup + vendor fetch + merge" sequence that
backs every status fetch. The underlying HTTP endpoints live in
:mod:`voltwatch._api.datastore` and :mod:`voltwatch._api.volttime`.
"""

from __future__ import annotations

import logging

from voltwatch._api.datastore import fetch_charger_record
from voltwatch._api.volttime import fetch_charger
from voltwatch._transport import Transport
from voltwatch.config import VoltwatchConfig
from voltwatch.models.charger import Charger, Connector, ConnectorStatus, ConnectorType
from voltwatch.models.datastore import ChargerRecord
from voltwatch.models.volttime import VoltTimeCharger, VoltTimeConnector

_logger = logging.getLogger(__name__)


def _merge_connector(vendor: VoltTimeConnector, record: ChargerRecord) -> Connector:
    registered = record.find_connector(vendor.id)
    if registered is None or registered.connector_type is None:
        return Connector(
            connector_id=vendor.connector_id,
            status=ConnectorStatus.UNREGISTERED,
            max_amperage=vendor.max_amperage,
            type=ConnectorType.UNREGISTERED,
        )

    status = vendor.status
    # SuspendedEVSE is presented as Paused.
    if status == ConnectorStatus.SUSPENDED_EVSE:
        status = ConnectorStatus.PAUSED
    if vendor.has_error:
        _logger.debug(
            "Connector %s on charger %s reports %s (%s)",
            vendor.connector_id,
            record.id,
            vendor.error,
            vendor.error_info,
        )
    return Connector(
        connector_id=vendor.connector_id,
        status=status,
        max_amperage=vendor.max_amperage,
        type=registered.connector_type,
    )


def merge_charger_status(record: ChargerRecord, vendor: VoltTimeCharger) -> Charger:
    """Combine the datastore row and the vendor payload into the public snapshot.

    Vendor connectors the datastore does not know about are reported as
    ``Unregistered`` so that nobody can start a session on them.
    """
    connectors = sorted(
        (_merge_connector(c, record) for c in vendor.connectors),
        key=lambda c: c.connector_id,
    )
    return Charger(
        code=record.id,
        reference=vendor.reference,
        connection_status=vendor.connection_status,
        status=vendor.status,
        model=vendor.model,
        connectors=connectors,
    )


async def fetch_charger_status(config: VoltwatchConfig, transport: Transport, charger_code: str) -> Charger:
    """Fetch the merged status of one charger by public code."""
    record = await fetch_charger_record(config, transport, charger_code)
    vendor = await fetch_charger(config, transport, record.charger_id)
    return merge_charger_status(record, vendor)
