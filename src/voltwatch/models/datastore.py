"""Charger/connector rows from the Supabase datastore.

The datastore is only used for lookup: it maps the public charger code to
the vendor charger id and records which connectors are registered, and
with which plug type.
"""

from __future__ import annotations

from pydantic import Field, field_validator

from voltwatch.models._base import VoltBaseModel
from voltwatch.models.charger import ConnectorType


class ConnectorRecord(VoltBaseModel):
    connector_id: int
    """Vendor-wide connector id (``VoltTimeConnector.id``)."""
    connector_idx: int = 0
    connector_type: ConnectorType | None = None


class ChargerRecord(VoltBaseModel):
    id: str
    """Public charger code."""
    charger_id: str
    """Vendor charger id."""
    connectors: list[ConnectorRecord] = Field(default_factory=list)

    @field_validator("charger_id", mode="before")
    @classmethod
    def _stringify_charger_id(cls, value: object) -> object:
        return str(value) if isinstance(value, int) else value

    @field_validator("connectors", mode="before")
    @classmethod
    def _none_connectors(cls, value: object) -> object:
        return [] if value is None else value

    def find_connector(self, vendor_connector_id: int) -> ConnectorRecord | None:
        for record in self.connectors:
            if record.connector_id == vendor_connector_id:
                return record
        return None
