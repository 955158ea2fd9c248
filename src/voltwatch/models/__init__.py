"""Data models for charger status, vendor payloads and datastore rows."""

from voltwatch.models._base import VoltBaseModel, VoltEnum
from voltwatch.models.charger import (
    STARTABLE_CONNECTOR_STATES,
    Charger,
    ChargerAvailability,
    ChargerModel,
    ChargerPatch,
    ConnectionStatus,
    Connector,
    ConnectorStatus,
    ConnectorType,
)
from voltwatch.models.datastore import ChargerRecord, ConnectorRecord
from voltwatch.models.errors import ErrorCategory, ErrorInfo, ErrorKind, Severity, classify_error
from voltwatch.models.requests import ChargerIdRequest
from voltwatch.models.volttime import VoltTimeCharger, VoltTimeConnector

__all__ = [
    "Charger",
    "ChargerAvailability",
    "ChargerIdRequest",
    "ChargerModel",
    "ChargerPatch",
    "ChargerRecord",
    "ConnectionStatus",
    "Connector",
    "ConnectorRecord",
    "ConnectorStatus",
    "ConnectorType",
    "ErrorCategory",
    "ErrorInfo",
    "ErrorKind",
    "STARTABLE_CONNECTOR_STATES",
    "Severity",
    "VoltBaseModel",
    "VoltEnum",
    "VoltTimeCharger",
    "VoltTimeConnector",
    "classify_error",
]
