"""Custom exception hierarchy for voltwatch."""

from __future__ import annotations


class VoltwatchError(Exception):
    """Base exception for all voltwatch errors."""


class VoltwatchConfigError(VoltwatchError):
    """Invalid or missing configuration."""


class VoltwatchValidationError(VoltwatchError):
    """Caller supplied an invalid value (e.g. a malformed charger id).

    Never retried by the polling engine.
    """

    def __init__(self, message: str, *, field: str = "") -> None:
        self.field = field
        super().__init__(message)


class VoltwatchTransportError(VoltwatchError):
    """HTTP-level failure (network, non-2xx, invalid JSON).

    A transport error without ``status_code`` is a network failure and
    is always considered transient.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class VoltwatchHttpError(VoltwatchTransportError):
    """The remote service answered with a non-success HTTP status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        endpoint: str = "",
        status_text: str = "",
        body: str = "",
    ) -> None:
        self.status_text = status_text
        self.body = body
        super().__init__(message, status_code=status_code, endpoint=endpoint)

    @property
    def retryable(self) -> bool:
        """429 and 5xx are worth retrying; other statuses are not."""
        assert self.status_code is not None  # noqa: S101
        return self.status_code == 429 or self.status_code >= 500


class ChargerNotFoundError(VoltwatchHttpError):
    """The charger id is unknown to the datastore or the vendor API."""

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        super().__init__(message, status_code=404, endpoint=endpoint, status_text="Not Found")


class VoltwatchRateLimitError(VoltwatchHttpError):
    """The remote service rejected the call with HTTP 429.

    ``retry_after`` carries the ``Retry-After`` header in seconds when
    the server sent one.
    """

    def __init__(self, message: str, *, endpoint: str = "", retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message, status_code=429, endpoint=endpoint, status_text="Too Many Requests")


class DatastoreError(VoltwatchError):
    """The charger/connector datastore returned an error.

    ``code`` is the PostgREST error code (e.g. ``PGRST116``) when known.
    """

    def __init__(self, message: str, *, status_code: int = 500, code: str = "") -> None:
        self.status_code = status_code
        self.code = code
        super().__init__(message)
