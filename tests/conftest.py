from __future__ import annotations

import asyncio
import copy
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import pytest

from voltwatch.config import VoltwatchConfig

TEAM_ID = "team-1"
VENDOR_CHARGER_ID = 4242
CHARGER_CODE = "ABCDEFGH"
DATASTORE_URL = "https://db.example.supabase.co/rest/v1/chargers"
VOLTTIME_URL = f"https://cloud.volttime.com/api/v2/teams/{TEAM_ID}/chargers/{VENDOR_CHARGER_ID}"

VENDOR_PAYLOAD: dict[str, Any] = {
    "data": {
        "id": VENDOR_CHARGER_ID,
        "uuid": "3f1e0c1a-uuid",
        "identity": "VT-000042",
        "reference": "Bay 1",
        "connection_status": "online",
        "status": "Available",
        "model": {"vendor": "Wallbox", "name": "Pulsar Plus"},
        "error": "NoError",
        "connectors": [
            {"id": 901, "connector_id": 2, "charger_id": 4242, "status": "SuspendedEVSE", "max_amperage": 32},
            {"id": 900, "connector_id": 1, "charger_id": 4242, "status": "Charging", "max_amperage": 32},
            {"id": 999, "connector_id": 3, "charger_id": 4242, "status": "Available", "max_amperage": 16},
        ],
    }
}

DATASTORE_ROW: dict[str, Any] = {
    "id": CHARGER_CODE,
    "charger_id": VENDOR_CHARGER_ID,
    "connectors": [
        {"connector_id": 900, "connector_idx": 1, "connector_type": "j1772"},
        {"connector_id": 901, "connector_idx": 2, "connector_type": "nacs"},
    ],
}


def make_config(**overrides: Any) -> VoltwatchConfig:
    values: dict[str, Any] = {
        "volttime_team_id": TEAM_ID,
        "volttime_api_key": "vt-secret",
        "supabase_url": "https://db.example.supabase.co",
        "supabase_key": "anon-secret",
    }
    values.update(overrides)
    return VoltwatchConfig(**values)


class Responses(list):
    """Sequence of per-call results for one :class:`FakeTransport` route."""


@dataclass
class FakeTransport:
    """Transport double answering by URL.

    A route value may be a payload, an exception instance (raised), or a
    :class:`Responses` list consumed one item per call (the last one
    repeats).
    """

    routes: dict[str, Any] = field(default_factory=dict)
    calls: list[dict[str, Any]] = field(default_factory=list)

    async def get_json(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        endpoint: str = "",
    ) -> Any:
        self.calls.append({"url": url, "headers": dict(headers or {}), "params": dict(params or {})})
        if url not in self.routes:
            raise AssertionError(f"unexpected request to {url}")
        result = self.routes[url]
        if isinstance(result, Responses):
            result = result.pop(0) if len(result) > 1 else result[0]
        if isinstance(result, BaseException):
            raise result
        return copy.deepcopy(result)

    def count(self, url: str) -> int:
        return sum(1 for call in self.calls if call["url"] == url)


class ManualClock:
    """Deterministic replacement for ``asyncio.sleep``.

    ``sleep()`` parks the caller until :meth:`advance` moves the clock past
    its deadline. Sleepers are woken one at a time in deadline order and
    the loop is drained in between.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._seq = 0
        self._sleepers: list[tuple[float, int, asyncio.Future[None]]] = []
        self.delays: list[float] = []

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._seq += 1
        self._sleepers.append((self.now + delay, self._seq, future))
        await future

    @property
    def pending(self) -> list[float]:
        return sorted(deadline for deadline, _, fut in self._sleepers if not fut.done())

    async def settle(self, rounds: int = 25) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            await self.settle()
            self._sleepers = [s for s in self._sleepers if not s[2].done()]
            due = [s for s in self._sleepers if s[0] <= target + 1e-9]
            if not due:
                break
            deadline, seq, future = min(due, key=lambda s: (s[0], s[1]))
            self._sleepers.remove((deadline, seq, future))
            self.now = max(self.now, deadline)
            future.set_result(None)
        self.now = target
        await self.settle()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def config() -> VoltwatchConfig:
    return make_config()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport(
        routes={
            DATASTORE_URL: [DATASTORE_ROW],
            VOLTTIME_URL: VENDOR_PAYLOAD,
        }
    )


def fixed(value: float) -> Callable[[], float]:
    return lambda: value
