from __future__ import annotations

import asyncio
from typing import Any

import pytest
from conftest import ManualClock, fixed

from voltwatch.exceptions import VoltwatchRateLimitError, VoltwatchTransportError, VoltwatchValidationError
from voltwatch.models.charger import Charger, ChargerAvailability, Connector, ConnectorStatus
from voltwatch.models.errors import ErrorKind
from voltwatch.polling.attention import HostAttention
from voltwatch.polling.engine import PollingEngine, PollingSnapshot
from voltwatch.polling.options import PollingOptions


def _charger(status: ConnectorStatus) -> Charger:
    return Charger(
        code="ABCDEFGH",
        status=ChargerAvailability.AVAILABLE,
        connectors=[Connector(connector_id=1, status=status)],
    )


class ScriptedFetch:
    """Fetch double returning (or raising) scripted results in order."""

    def __init__(self, *results: Any) -> None:
        self._results = list(results)
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        result = self._results.pop(0) if len(self._results) > 1 else self._results[0]
        if isinstance(result, BaseException):
            raise result
        return result


def _engine(clock: ManualClock, fetch: Any, **kwargs: Any) -> PollingEngine[Charger]:
    options = kwargs.pop("options", None)
    base_interval = kwargs.pop("base_interval", 30.0)
    return PollingEngine(
        _charger(ConnectorStatus.AVAILABLE),
        fetch,
        base_interval,
        options,
        sleep=clock.sleep,
        rand=fixed(0.5),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_first_fetch_replaces_initial_data(clock: ManualClock) -> None:
    fetch = ScriptedFetch(_charger(ConnectorStatus.CHARGING))
    async with _engine(clock, fetch) as engine:
        await clock.settle()

        assert fetch.calls == 1
        assert engine.data.connectors[0].status == ConnectorStatus.CHARGING
        assert engine.retry_count == 0
        assert engine.error is None
        assert engine.is_polling is False


@pytest.mark.asyncio
async def test_ticks_at_the_base_interval(clock: ManualClock) -> None:
    fetch = ScriptedFetch(_charger(ConnectorStatus.AVAILABLE))
    async with _engine(clock, fetch):
        await clock.settle()
        await clock.advance(29.0)
        assert fetch.calls == 1

        await clock.advance(1.0)
        assert fetch.calls == 2

        await clock.advance(60.0)
        assert fetch.calls == 4


@pytest.mark.asyncio
async def test_rate_limited_twice_then_success(clock: ManualClock) -> None:
    fetch = ScriptedFetch(
        VoltwatchRateLimitError("HTTP 429"),
        VoltwatchRateLimitError("HTTP 429"),
        _charger(ConnectorStatus.CHARGING),
    )
    async with _engine(clock, fetch) as engine:
        await clock.settle()
        assert fetch.calls == 1
        assert engine.retry_count == 1
        # Retries are pending, so the error is not surfaced yet.
        assert engine.error is None

        await clock.advance(1.0)
        assert fetch.calls == 2
        assert engine.retry_count == 2

        await clock.advance(2.0)
        assert fetch.calls == 3
        assert engine.error is None
        assert engine.retry_count == 0
        assert engine.data.connectors[0].status == ConnectorStatus.CHARGING


@pytest.mark.asyncio
async def test_error_surfaces_after_retries_are_exhausted(clock: ManualClock) -> None:
    fetch = ScriptedFetch(VoltwatchTransportError("connection reset"))
    async with _engine(clock, fetch, options=PollingOptions(max_retries=2)) as engine:
        await clock.settle()
        await clock.advance(1.0)
        await clock.advance(2.0)

        assert fetch.calls == 3
        assert engine.retry_count == 3
        assert engine.error is not None
        assert engine.error.kind == ErrorKind.NETWORK
        assert isinstance(engine.last_exception, VoltwatchTransportError)
        assert engine.retry_pending is False
        # Stale data stays visible.
        assert engine.data.connectors[0].status == ConnectorStatus.AVAILABLE

        await clock.advance(4.0)
        assert fetch.calls == 3


@pytest.mark.asyncio
async def test_natural_tick_continues_after_exhaustion(clock: ManualClock) -> None:
    fetch = ScriptedFetch(VoltwatchTransportError("down"), _charger(ConnectorStatus.FINISHING))
    async with _engine(clock, fetch, options=PollingOptions(max_retries=0)) as engine:
        await clock.settle()
        assert engine.error is not None
        assert engine.retry_count == 1

        await clock.advance(30.0)
        assert fetch.calls == 2
        assert engine.error is None
        assert engine.retry_count == 0
        assert engine.data.connectors[0].status == ConnectorStatus.FINISHING


@pytest.mark.asyncio
async def test_backoff_delays_double(clock: ManualClock) -> None:
    fetch = ScriptedFetch(VoltwatchTransportError("down"))
    options = PollingOptions(max_retries=3, retry_delay=1.0)
    async with _engine(clock, fetch, options=options):
        await clock.settle()
        await clock.advance(1.0)
        await clock.advance(2.0)
        await clock.advance(4.0)

        retry_delays = [d for d in clock.delays if d != 30.0]
        assert retry_delays == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_validation_error_is_not_retried(clock: ManualClock) -> None:
    fetch = ScriptedFetch(VoltwatchValidationError("bad id"))
    async with _engine(clock, fetch) as engine:
        await clock.settle()

        assert engine.error is not None
        assert engine.error.kind == ErrorKind.VALIDATION
        assert engine.error.retryable is False
        assert engine.retry_pending is False
        assert engine.retry_count == 1


@pytest.mark.asyncio
async def test_manual_retry_resets_and_fetches(clock: ManualClock) -> None:
    fetch = ScriptedFetch(VoltwatchTransportError("down"), _charger(ConnectorStatus.CHARGING))
    async with _engine(clock, fetch, options=PollingOptions(max_retries=0)) as engine:
        await clock.settle()
        assert engine.error is not None

        task = engine.retry()
        assert task is not None
        await task

        assert fetch.calls == 2
        assert engine.error is None
        assert engine.retry_count == 0
        assert engine.data.connectors[0].status == ConnectorStatus.CHARGING


@pytest.mark.asyncio
async def test_callbacks_receive_results(clock: ManualClock) -> None:
    errors: list[tuple[str, int]] = []
    successes: list[Charger] = []
    options = PollingOptions(
        on_error=lambda exc, attempt: errors.append((type(exc).__name__, attempt)),
        on_success=successes.append,
    )
    fetch = ScriptedFetch(VoltwatchTransportError("down"), _charger(ConnectorStatus.CHARGING))
    async with _engine(clock, fetch, options=options):
        await clock.settle()
        await clock.advance(1.0)

    assert errors == [("VoltwatchTransportError", 1)]
    assert len(successes) == 1


@pytest.mark.asyncio
async def test_failing_callback_does_not_break_polling(clock: ManualClock) -> None:
    def _boom(data: Charger) -> None:
        raise RuntimeError("observer bug")

    fetch = ScriptedFetch(_charger(ConnectorStatus.CHARGING))
    async with _engine(clock, fetch, options=PollingOptions(on_success=_boom)) as engine:
        await clock.settle()
        assert engine.error is None
        await clock.advance(30.0)
        assert fetch.calls == 2


@pytest.mark.asyncio
async def test_disabled_engine_skips_ticks(clock: ManualClock) -> None:
    fetch = ScriptedFetch(_charger(ConnectorStatus.AVAILABLE))
    async with _engine(clock, fetch, options=PollingOptions(enabled=False)) as engine:
        await clock.settle()
        await clock.advance(120.0)
        assert fetch.calls == 1

        engine.enabled = True
        await clock.advance(30.0)
        assert fetch.calls == 2


@pytest.mark.asyncio
async def test_single_fetch_in_flight(clock: ManualClock) -> None:
    release = asyncio.Event()
    calls = 0

    async def slow_fetch() -> Charger:
        nonlocal calls
        calls += 1
        await release.wait()
        return _charger(ConnectorStatus.CHARGING)

    async with _engine(clock, slow_fetch) as engine:
        await clock.settle()
        assert engine.is_polling is True

        await clock.advance(90.0)
        engine.retry()
        await clock.settle()
        assert calls == 1

        release.set()
        await clock.settle()
        assert engine.is_polling is False
        assert engine.data.connectors[0].status == ConnectorStatus.CHARGING


@pytest.mark.asyncio
async def test_stop_prevents_late_results(clock: ManualClock) -> None:
    release = asyncio.Event()
    snapshots: list[PollingSnapshot[Charger]] = []

    async def slow_fetch() -> Charger:
        await release.wait()
        return _charger(ConnectorStatus.CHARGING)

    engine = _engine(clock, slow_fetch)
    engine.add_listener(snapshots.append)
    engine.start()
    await clock.settle()
    seen = len(snapshots)

    engine.stop()
    release.set()
    await clock.advance(120.0)

    assert engine.running is False
    assert engine.data.connectors[0].status == ConnectorStatus.AVAILABLE
    assert len(snapshots) == seen
    assert clock.pending == []


@pytest.mark.asyncio
async def test_stop_cancels_pending_retry(clock: ManualClock) -> None:
    fetch = ScriptedFetch(VoltwatchTransportError("down"))
    engine = _engine(clock, fetch).start()
    await clock.settle()
    assert engine.retry_pending is True

    engine.stop()
    await clock.advance(60.0)
    assert fetch.calls == 1
    assert engine.retry() is None


@pytest.mark.asyncio
async def test_stop_cancels_retry_fetch_in_flight(clock: ManualClock) -> None:
    release = asyncio.Event()
    cancelled = False
    calls = 0

    async def fetch() -> Charger:
        nonlocal calls, cancelled
        calls += 1
        if calls == 1:
            raise VoltwatchTransportError("down")
        try:
            await release.wait()
        except asyncio.CancelledError:
            cancelled = True
            raise
        return _charger(ConnectorStatus.CHARGING)

    engine = _engine(clock, fetch).start()
    await clock.settle()
    await clock.advance(5.0)
    assert calls == 2
    assert engine.is_polling is True

    engine.stop()
    await clock.settle()
    assert cancelled is True


@pytest.mark.asyncio
async def test_disabled_engine_ignores_attention(clock: ManualClock) -> None:
    attention = HostAttention()
    fetch = ScriptedFetch(_charger(ConnectorStatus.AVAILABLE))
    options = PollingOptions(enabled=False)
    async with _engine(clock, fetch, attention=attention, options=options):
        await clock.settle()

        attention.set_visible(False)
        attention.set_visible(True)
        attention.set_focused(False)
        attention.set_focused(True)
        await clock.settle()
        assert fetch.calls == 1


@pytest.mark.asyncio
async def test_paused_while_hidden_and_refetch_on_visible(clock: ManualClock) -> None:
    attention = HostAttention()
    fetch = ScriptedFetch(_charger(ConnectorStatus.AVAILABLE))
    async with _engine(clock, fetch, attention=attention):
        await clock.settle()

        attention.set_visible(False)
        await clock.advance(120.0)
        assert fetch.calls == 1

        attention.set_visible(True)
        await clock.settle()
        assert fetch.calls == 2


@pytest.mark.asyncio
async def test_retry_not_run_while_hidden(clock: ManualClock) -> None:
    attention = HostAttention()
    fetch = ScriptedFetch(VoltwatchTransportError("down"), _charger(ConnectorStatus.CHARGING))
    async with _engine(clock, fetch, attention=attention) as engine:
        await clock.settle()
        assert engine.retry_pending is True

        attention.set_visible(False)
        await clock.advance(10.0)
        assert fetch.calls == 1
        assert engine.retry_pending is False


@pytest.mark.asyncio
async def test_focus_refetch(clock: ManualClock) -> None:
    attention = HostAttention()
    fetch = ScriptedFetch(_charger(ConnectorStatus.AVAILABLE))
    async with _engine(clock, fetch, attention=attention):
        await clock.settle()

        attention.set_focused(False)
        attention.set_focused(True)
        await clock.settle()
        assert fetch.calls == 2


@pytest.mark.asyncio
async def test_one_refetch_per_regained_attention(clock: ManualClock) -> None:
    attention = HostAttention()
    fetch = ScriptedFetch(_charger(ConnectorStatus.AVAILABLE))
    async with _engine(clock, fetch, attention=attention):
        await clock.settle()

        attention.set_visible(False)
        attention.set_focused(False)
        attention.set_visible(True)
        await clock.settle()
        attention.set_focused(True)
        await clock.settle()

        assert fetch.calls == 2


@pytest.mark.asyncio
async def test_focus_refetch_can_be_disabled(clock: ManualClock) -> None:
    attention = HostAttention()
    fetch = ScriptedFetch(_charger(ConnectorStatus.AVAILABLE))
    options = PollingOptions(refetch_on_focus=False)
    async with _engine(clock, fetch, attention=attention, options=options):
        await clock.settle()
        attention.set_focused(False)
        attention.set_focused(True)
        await clock.settle()
        assert fetch.calls == 1


@pytest.mark.asyncio
async def test_keeps_polling_while_hidden_when_not_pausing(clock: ManualClock) -> None:
    attention = HostAttention(visible=False)
    fetch = ScriptedFetch(_charger(ConnectorStatus.AVAILABLE))
    options = PollingOptions(pause_when_hidden=False)
    async with _engine(clock, fetch, attention=attention, options=options):
        await clock.settle()
        await clock.advance(30.0)
        assert fetch.calls == 2


@pytest.mark.asyncio
async def test_adaptive_interval_grows_when_unchanged(clock: ManualClock) -> None:
    fetch = ScriptedFetch(_charger(ConnectorStatus.AVAILABLE))
    async with _engine(clock, fetch, options=PollingOptions(adaptive_polling=True)) as engine:
        await clock.settle()
        assert engine.interval == pytest.approx(33.0)

        for _ in range(20):
            await clock.advance(engine.interval)
        assert engine.interval == pytest.approx(60.0)


@pytest.mark.asyncio
async def test_adaptive_interval_shrinks_on_change(clock: ManualClock) -> None:
    fetch = ScriptedFetch(
        _charger(ConnectorStatus.CHARGING),
        _charger(ConnectorStatus.FINISHING),
        _charger(ConnectorStatus.AVAILABLE),
        _charger(ConnectorStatus.CHARGING),
        _charger(ConnectorStatus.FINISHING),
    )
    async with _engine(clock, fetch, options=PollingOptions(adaptive_polling=True)) as engine:
        await clock.settle()
        assert engine.interval == pytest.approx(24.0)

        await clock.advance(24.0)
        assert engine.interval == pytest.approx(19.2)

        for _ in range(3):
            await clock.advance(engine.interval)
        assert engine.interval == pytest.approx(15.0)


@pytest.mark.asyncio
async def test_adaptive_interval_is_clamped_at_start(clock: ManualClock) -> None:
    fetch = ScriptedFetch(_charger(ConnectorStatus.AVAILABLE))
    engine = _engine(clock, fetch, base_interval=5.0, options=PollingOptions(adaptive_polling=True))
    assert engine.interval == 15.0


@pytest.mark.asyncio
async def test_listeners_see_polling_flag(clock: ManualClock) -> None:
    flags: list[bool] = []
    fetch = ScriptedFetch(_charger(ConnectorStatus.CHARGING))
    engine = _engine(clock, fetch)
    remove = engine.add_listener(lambda snap: flags.append(snap.is_polling))
    async with engine:
        await clock.settle()
        remove()
        await clock.advance(30.0)

    assert flags == [True, False]


def test_rejects_non_positive_interval() -> None:
    with pytest.raises(ValueError):
        PollingEngine(None, ScriptedFetch(None), 0)


@pytest.mark.asyncio
async def test_idle_charger_starts_charging(clock: ManualClock) -> None:
    idle = Charger(
        code="ABCDEFGH",
        connection_status="online",
        connectors=[Connector(connector_id=1), Connector(connector_id=2)],
    )
    fetch = ScriptedFetch(
        Charger(
            code="ABCDEFGH",
            connection_status="online",
            connectors=[Connector(connector_id=1, status=ConnectorStatus.CHARGING)],
        )
    )
    async with PollingEngine(idle, fetch, 30.0, sleep=clock.sleep, rand=fixed(0.5)) as engine:
        await clock.settle()

        assert engine.data.connectors[0].status == ConnectorStatus.CHARGING
        assert engine.retry_count == 0
        assert engine.error is None
