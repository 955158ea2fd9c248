"""Classified error record.

Every failure that reaches observable state (the polling engine's ``error``,
HTTP error bodies) is first reduced to an :class:`ErrorInfo`. Consumers
branch on :attr:`ErrorInfo.kind` rather than on exception classes.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from voltwatch.exceptions import (
    DatastoreError,
    VoltwatchHttpError,
    VoltwatchRateLimitError,
    VoltwatchTransportError,
    VoltwatchValidationError,
)


class ErrorKind(StrEnum):
    NETWORK = "network"
    HTTP_STATUS = "http_status"
    VALIDATION = "validation"
    RATE_LIMITED = "rate_limited"
    UNKNOWN = "unknown"


class ErrorCategory(StrEnum):
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    NETWORK = "network"
    SERVER = "server"
    CLIENT = "client"
    EXTERNAL = "external"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


_USER_MESSAGES: dict[int, str] = {
    400: "Invalid charger request. Please check the charger ID.",
    401: "Authentication required for charger service.",
    403: "Access denied to charger service.",
    404: "Charger not found in the charging network.",
    429: "Too many charger requests. Please wait a moment.",
    500: "Charging service temporarily unavailable.",
    502: "The charger service is temporarily unavailable.",
    503: "Charging service temporarily unavailable.",
}
_DEFAULT_USER_MESSAGE = "Charger service error occurred. Please try again."
_NETWORK_USER_MESSAGE = "Unable to reach the charger service. Showing the last known status."


class ErrorInfo(BaseModel):
    """A failure reduced to the fields the UI and retry logic need."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ErrorKind
    message: str
    category: ErrorCategory
    severity: Severity
    retryable: bool
    user_message: str
    status: int | None = None
    retry_after: float | None = None


def _category_for_status(status: int) -> ErrorCategory:
    if status == 401:
        return ErrorCategory.AUTHENTICATION
    if status == 403:
        return ErrorCategory.AUTHORIZATION
    if status in (400, 422):
        return ErrorCategory.VALIDATION
    if status >= 500:
        return ErrorCategory.SERVER
    return ErrorCategory.CLIENT


def _severity_for_status(status: int) -> Severity:
    if status >= 500:
        return Severity.HIGH
    if status == 404:
        return Severity.LOW
    return Severity.MEDIUM


def _from_status(exc: BaseException, status: int, *, retry_after: float | None = None) -> ErrorInfo:
    retryable = status == 429 or status >= 500
    return ErrorInfo(
        kind=ErrorKind.RATE_LIMITED if status == 429 else ErrorKind.HTTP_STATUS,
        message=str(exc),
        status=status,
        category=_category_for_status(status),
        severity=_severity_for_status(status),
        retryable=retryable,
        user_message=_USER_MESSAGES.get(status, _DEFAULT_USER_MESSAGE),
        retry_after=retry_after,
    )


def classify_error(exc: BaseException) -> ErrorInfo:
    """Reduce any exception raised by a status fetch to an :class:`ErrorInfo`.

    Unrecognised exceptions are treated as transient so that a bug in a
    fetch function degrades to "stale data" rather than stopping polling.
    """
    if isinstance(exc, VoltwatchValidationError):
        return ErrorInfo(
            kind=ErrorKind.VALIDATION,
            message=str(exc),
            status=400,
            category=ErrorCategory.VALIDATION,
            severity=Severity.MEDIUM,
            retryable=False,
            user_message=str(exc) or _USER_MESSAGES[400],
        )
    if isinstance(exc, VoltwatchRateLimitError):
        return _from_status(exc, 429, retry_after=exc.retry_after)
    if isinstance(exc, VoltwatchHttpError) and exc.status_code is not None:
        return _from_status(exc, exc.status_code)
    if isinstance(exc, DatastoreError):
        return _from_status(exc, exc.status_code)
    if isinstance(exc, (VoltwatchTransportError, OSError, TimeoutError)):
        return ErrorInfo(
            kind=ErrorKind.NETWORK,
            message=str(exc) or type(exc).__name__,
            category=ErrorCategory.NETWORK,
            severity=Severity.MEDIUM,
            retryable=True,
            user_message=_NETWORK_USER_MESSAGE,
        )
    status = getattr(exc, "status", None)
    if isinstance(status, int):
        return _from_status(exc, status)
    return ErrorInfo(
        kind=ErrorKind.UNKNOWN,
        message=str(exc) or type(exc).__name__,
        category=ErrorCategory.EXTERNAL,
        severity=Severity.MEDIUM,
        retryable=True,
        user_message=_DEFAULT_USER_MESSAGE,
    )
