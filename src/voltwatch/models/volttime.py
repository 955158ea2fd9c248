"""VoltTime charger payload.

Mapped from ``GET /teams/{team}/chargers/{charger}`` which wraps the charger
in a ``{"data": {...}}`` envelope. Internal identifiers (``uuid``,
``identity``) are kept for lookups but never exposed through the public
:class:`~voltwatch.models.charger.Charger`.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, model_validator

from voltwatch.models._base import VoltBaseModel
from voltwatch.models.charger import ChargerAvailability, ChargerModel, ConnectionStatus, ConnectorStatus

_NO_ERROR = "NoError"


class VoltTimeConnector(VoltBaseModel):
    """Connector as reported by the vendor."""

    id: int
    """Vendor-wide connector id (what the datastore references)."""
    connector_id: int
    """Connector position on the charger (1-based)."""
    charger_id: int | None = None
    status: ConnectorStatus = ConnectorStatus.UNKNOWN
    max_amperage: float | None = None
    error: str = _NO_ERROR
    error_info: str | None = None

    @property
    def has_error(self) -> bool:
        return bool(self.error) and self.error != _NO_ERROR


class VoltTimeCharger(VoltBaseModel):
    """Charger as reported by the vendor."""

    id: int
    uuid: str = ""
    identity: str = ""
    reference: str | None = None
    connection_status: ConnectionStatus = ConnectionStatus.UNKNOWN
    status: ChargerAvailability = ChargerAvailability.UNKNOWN
    model: ChargerModel = Field(default_factory=ChargerModel)
    error: str = _NO_ERROR
    error_info: str | None = None
    deprecation: str | None = None
    connectors: list[VoltTimeConnector] = Field(default_factory=list)

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)
    """Original ``data`` object."""

    @model_validator(mode="before")
    @classmethod
    def _unwrap_envelope(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        inner = values.get("data") if isinstance(values.get("data"), dict) else values
        merged = dict(inner)
        if merged.get("connectors") is None:
            merged["connectors"] = []
        merged.setdefault("raw", inner)
        return merged
