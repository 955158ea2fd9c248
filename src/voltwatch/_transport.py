"""HTTP transport shared by the VoltTime and datastore endpoint modules."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from voltwatch._constants import USER_AGENT
from voltwatch._redact import redact_for_log
from voltwatch.config import VoltwatchConfig
from voltwatch.exceptions import VoltwatchHttpError, VoltwatchRateLimitError, VoltwatchTransportError

_logger = logging.getLogger(__name__)

#: Human readable reason phrases for the statuses the UI distinguishes.
_STATUS_TEXT: dict[int, str] = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    429: "Too Many Requests",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpTransport`) concrete.
    """

    async def get_json(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        endpoint: str = "",
    ) -> Any:
        ...


def _parse_retry_after(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


class HttpTransport:
    """JSON-over-HTTP transport with status classification."""

    def __init__(self, config: VoltwatchConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    async def get_json(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        endpoint: str = "",
    ) -> Any:
        """GET *url* and return the decoded JSON body.

        Raises
        ------
        VoltwatchRateLimitError
            The server answered 429.
        VoltwatchHttpError
            Any other non-2xx status.
        VoltwatchTransportError
            Network failure, timeout or a body that is not JSON.
        """
        request_headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": USER_AGENT,
        }
        if headers:
            request_headers.update(headers)

        endpoint = endpoint or url
        _logger.debug("GET %s", url)
        if self._config.api_trace_enabled:
            _logger.debug("Request headers %s params %s", redact_for_log(request_headers), dict(params or {}))

        try:
            async with self._http.get(url, headers=request_headers, params=params, timeout=self._timeout) as resp:
                text = await resp.text()
                if resp.status == 429:
                    raise VoltwatchRateLimitError(
                        f"HTTP 429 from {endpoint}",
                        endpoint=endpoint,
                        retry_after=_parse_retry_after(resp.headers.get("Retry-After")),
                    )
                if resp.status < 200 or resp.status >= 300:
                    raise VoltwatchHttpError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                        status_text=resp.reason or _STATUS_TEXT.get(resp.status, ""),
                        body=text,
                    )
        except VoltwatchTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise VoltwatchTransportError(
                f"Request to {endpoint} failed: {exc!r}",
                endpoint=endpoint,
            ) from exc

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise VoltwatchTransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                endpoint=endpoint,
            ) from exc

        if self._config.api_trace_enabled:
            _logger.debug("Response from %s: %s", endpoint, redact_for_log(body))
        return body
