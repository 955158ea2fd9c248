"""Public charger status model.

This is the confirmed snapshot the polling engine owns and replaces
wholesale on every successful poll.
"""

from __future__ import annotations

from pydantic import Field, field_validator

from voltwatch.models._base import VoltBaseModel, VoltEnum

# ------------------------------------------------------------------
# Enums
# ------------------------------------------------------------------


class ConnectorStatus(VoltEnum):
    """OCPP-style connector status as reported by the vendor.

    ``Paused`` is our presentation of ``SuspendedEVSE``; ``Unregistered``
    marks a connector the datastore does not know about.
    """

    AVAILABLE = "Available"
    PREPARING = "Preparing"
    CHARGING = "Charging"
    FINISHING = "Finishing"
    PAUSED = "Paused"
    SUSPENDED_EV = "SuspendedEV"
    SUSPENDED_EVSE = "SuspendedEVSE"
    FAULTED = "Faulted"
    UNAVAILABLE = "Unavailable"
    UNKNOWN = "Unknown"
    UNREGISTERED = "Unregistered"


class ConnectionStatus(VoltEnum):
    """Whether the charger is currently connected to the vendor cloud."""

    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


class ChargerAvailability(VoltEnum):
    """Charger-level availability summary."""

    AVAILABLE = "Available"
    UNAVAILABLE = "Unavailable"
    OFFLINE = "Offline"
    UNKNOWN = "Unknown"


class ConnectorType(VoltEnum):
    """Physical plug type, as recorded in the datastore."""

    J1772 = "j1772"
    NACS = "nacs"
    CCS1 = "ccs1"
    UNREGISTERED = "Unregistered"


#: Connector states in which a new session can begin.
STARTABLE_CONNECTOR_STATES: frozenset[ConnectorStatus] = frozenset(
    {ConnectorStatus.AVAILABLE, ConnectorStatus.PREPARING}
)

# ------------------------------------------------------------------
# Records
# ------------------------------------------------------------------


class ChargerModel(VoltBaseModel):
    """Vendor/model metadata of a charger."""

    vendor: str = ""
    name: str = ""


class Connector(VoltBaseModel):
    """A single connector on a charger."""

    connector_id: int
    status: ConnectorStatus = ConnectorStatus.UNKNOWN
    max_amperage: float | None = None
    type: ConnectorType = ConnectorType.UNREGISTERED

    @property
    def is_startable(self) -> bool:
        return self.status in STARTABLE_CONNECTOR_STATES


class Charger(VoltBaseModel):
    """Confirmed status snapshot of one charger."""

    code: str
    reference: str | None = None
    connection_status: ConnectionStatus = ConnectionStatus.UNKNOWN
    status: ChargerAvailability = ChargerAvailability.UNKNOWN
    model: ChargerModel = Field(default_factory=ChargerModel)
    connectors: list[Connector] = Field(default_factory=list)

    @field_validator("connectors", mode="before")
    @classmethod
    def _none_connectors(cls, value: object) -> object:
        return [] if value is None else value

    @property
    def is_online(self) -> bool:
        return self.connection_status == ConnectionStatus.ONLINE

    @property
    def has_available_connector(self) -> bool:
        """Whether a new charging session could begin right now."""
        return self.is_online and any(c.is_startable for c in self.connectors)

    def connector(self, connector_id: int) -> Connector | None:
        for connector in self.connectors:
            if connector.connector_id == connector_id:
                return connector
        return None


class ChargerPatch(VoltBaseModel):
    """Partial charger used for optimistic updates.

    Only fields that were explicitly set are applied on top of the
    confirmed snapshot.
    """

    reference: str | None = None
    connection_status: ConnectionStatus | None = None
    status: ChargerAvailability | None = None
    model: ChargerModel | None = None
    connectors: list[Connector] | None = None
