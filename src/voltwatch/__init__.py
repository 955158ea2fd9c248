"""voltwatch - Async charger status polling for VoltTime chargers."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("voltwatch")
except PackageNotFoundError:
    __version__ = "0+local"
from voltwatch.client import VoltwatchClient, validate_charger_id
from voltwatch.config import VoltwatchConfig
from voltwatch.exceptions import (
    ChargerNotFoundError,
    DatastoreError,
    VoltwatchConfigError,
    VoltwatchError,
    VoltwatchHttpError,
    VoltwatchRateLimitError,
    VoltwatchTransportError,
    VoltwatchValidationError,
)
from voltwatch.models import (
    Charger,
    ChargerPatch,
    ChargerRecord,
    ConnectionStatus,
    Connector,
    ConnectorStatus,
    ConnectorType,
    ErrorInfo,
    ErrorKind,
    classify_error,
)
from voltwatch.polling import HostAttention, PollingEngine, PollingOptions, PollingSnapshot
from voltwatch.ratelimit import RateLimiter
from voltwatch.state import OptimisticOverlay, apply_patch, connector_status_patch

__all__ = [
    "__version__",
    "Charger",
    "ChargerNotFoundError",
    "ChargerPatch",
    "ChargerRecord",
    "ConnectionStatus",
    "Connector",
    "ConnectorStatus",
    "ConnectorType",
    "DatastoreError",
    "ErrorInfo",
    "ErrorKind",
    "HostAttention",
    "OptimisticOverlay",
    "PollingEngine",
    "PollingOptions",
    "PollingSnapshot",
    "RateLimiter",
    "VoltwatchClient",
    "VoltwatchConfig",
    "VoltwatchConfigError",
    "VoltwatchError",
    "VoltwatchHttpError",
    "VoltwatchRateLimitError",
    "VoltwatchTransportError",
    "VoltwatchValidationError",
    "apply_patch",
    "classify_error",
    "connector_status_patch",
    "validate_charger_id",
]
