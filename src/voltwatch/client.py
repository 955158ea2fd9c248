"""High-level async client for charger status."""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import aiohttp
from pydantic import ValidationError

from voltwatch._api.datastore import list_charger_records
from voltwatch._constants import DEFAULT_POLL_INTERVAL
from voltwatch._transport import HttpTransport, Transport
from voltwatch.config import VoltwatchConfig
from voltwatch.exceptions import VoltwatchError, VoltwatchValidationError
from voltwatch.ingestion.status import fetch_charger_status
from voltwatch.models.charger import Charger
from voltwatch.models.datastore import ChargerRecord
from voltwatch.models.requests import ChargerIdRequest
from voltwatch.polling.attention import HostAttention
from voltwatch.polling.engine import PollingEngine
from voltwatch.polling.options import PollingOptions

_logger = logging.getLogger(__name__)


def validate_charger_id(charger_id: str) -> str:
    """Normalize a public charger code or raise :class:`VoltwatchValidationError`."""
    try:
        return ChargerIdRequest(id=charger_id).id
    except ValidationError as exc:
        message = exc.errors()[0].get("msg", "Invalid charger ID")
        raise VoltwatchValidationError(message.removeprefix("Value error, "), field="id") from exc


class VoltwatchClient:
    """Async client for the charger datastore and the VoltTime API.

    Usage::

        async with VoltwatchClient(config) as client:
            charger = await client.get_charger_status("ABCD-EFGH")
            engine = await client.watch("ABCD-EFGH")
    """

    def __init__(
        self,
        config: VoltwatchConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport
        self._external_transport = transport is not None
        self._engines: list[PollingEngine[Charger]] = []

    @property
    def config(self) -> VoltwatchConfig:
        return self._config

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> VoltwatchClient:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Stop every engine created by :meth:`watch` and release the session."""
        for engine in self._engines:
            engine.stop()
        self._engines.clear()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if not self._external_transport:
            self._transport = None

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise VoltwatchError("Client not initialized. Use 'async with VoltwatchClient(...) as client:'")
        return self._transport

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_charger_status(self, charger_id: str) -> Charger:
        """Fetch the merged status of one charger.

        Raises
        ------
        VoltwatchValidationError
            *charger_id* is not a valid public code.
        ChargerNotFoundError
            The charger is unknown to the datastore or to VoltTime.
        """
        code = validate_charger_id(charger_id)
        return await fetch_charger_status(self._config, self._require_transport(), code)

    async def list_chargers(self) -> list[ChargerRecord]:
        """List every charger registered in the datastore."""
        return await list_charger_records(self._config, self._require_transport())

    def status_fetcher(self, charger_id: str) -> Callable[[], Awaitable[Charger]]:
        """Zero-argument fetch function suitable for a :class:`PollingEngine`."""
        code = validate_charger_id(charger_id)
        return functools.partial(fetch_charger_status, self._config, self._require_transport(), code)

    async def watch(
        self,
        charger_id: str,
        *,
        base_interval: float = DEFAULT_POLL_INTERVAL,
        options: PollingOptions | None = None,
        attention: HostAttention | None = None,
        initial: Charger | None = None,
    ) -> PollingEngine[Charger]:
        """Start polling one charger and return the running engine.

        Without *initial* the charger is fetched once up front, so errors
        such as an unknown charger surface here rather than inside the
        engine.
        """
        fetch = self.status_fetcher(charger_id)
        if initial is None:
            initial = await fetch()
        engine: PollingEngine[Charger] = PollingEngine(
            initial,
            fetch,
            base_interval,
            options,
            attention=attention,
            name=f"charger-{initial.code}",
        )
        self._engines = [e for e in self._engines if e.running]
        self._engines.append(engine)
        _logger.debug("Watching charger %s", initial.code)
        return engine.start()
