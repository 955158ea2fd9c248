"""Per-subscription polling engine.

A :class:`PollingEngine` keeps one piece of remote state fresh: it fetches
immediately on start, then once per (possibly adaptive) interval, retries
failures with jittered exponential backoff, and stops fetching while its
host is hidden.

All scheduling happens on the running asyncio loop. Every continuation
checks the engine's "subscribed" flag before touching state, so after
:meth:`PollingEngine.stop` no late fetch result is ever applied.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import random
from collections.abc import Awaitable, Callable, Coroutine
from enum import StrEnum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from voltwatch._constants import DEFAULT_POLL_INTERVAL
from voltwatch.models.errors import ErrorInfo, classify_error
from voltwatch.polling.attention import AttentionEvent, HostAttention
from voltwatch.polling.options import (
    PollingOptions,
    apply_jitter,
    backoff_delay,
    clamp_adaptive_interval,
    next_adaptive_interval,
)

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class FetchReason(StrEnum):
    INITIAL = "initial"
    TICK = "tick"
    RETRY = "retry"
    MANUAL = "manual"
    VISIBLE = "visible"
    FOCUS = "focus"


#: Reasons that are suppressed while the host is hidden.
_SCHEDULED_REASONS: frozenset[FetchReason] = frozenset({FetchReason.TICK, FetchReason.RETRY})


@dataclasses.dataclass(frozen=True, slots=True)
class PollingSnapshot(Generic[T]):
    """Immutable view of the engine state handed to listeners."""

    data: T
    error: ErrorInfo | None
    is_polling: bool
    retry_count: int
    interval: float
    #: Incremented on every successful fetch, even one returning the same object.
    confirmed_seq: int = 0


@dataclasses.dataclass(slots=True)
class _PollingState(Generic[T]):
    data: T
    interval: float
    error: ErrorInfo | None = None
    last_exception: Exception | None = None
    is_polling: bool = False
    retry_count: int = 0
    confirmed_seq: int = 0


def _fingerprint(data: Any) -> str:
    """Serialized form used to detect whether a fetch changed anything."""
    if isinstance(data, BaseModel):
        return data.model_dump_json()
    return json.dumps(data, sort_keys=True, default=str)


class PollingEngine(Generic[T]):
    """Poll ``fetch`` on a schedule and expose the latest confirmed result.

    Usage::

        engine = PollingEngine(initial, fetch, 30.0, PollingOptions(adaptive_polling=True))
        engine.start()
        ...
        engine.stop()

    The engine is also an async context manager that starts on entry and
    stops on exit.

    Parameters
    ----------
    initial_data
        Snapshot displayed until the first successful fetch.
    fetch
        Zero-argument coroutine function returning a fresh snapshot.
    base_interval
        Seconds between scheduled fetches (the starting point when
        ``adaptive_polling`` is enabled).
    options
        See :class:`~voltwatch.polling.options.PollingOptions`.
    attention
        Host visibility/focus observer. Without one the host is treated as
        permanently visible and focused.
    sleep
        Coroutine used for every delay; replaceable in tests.
    rand
        Source of jitter samples in ``[0, 1)``.
    """

    def __init__(
        self,
        initial_data: T,
        fetch: Callable[[], Awaitable[T]],
        base_interval: float = DEFAULT_POLL_INTERVAL,
        options: PollingOptions | None = None,
        *,
        attention: HostAttention | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
        name: str = "",
    ) -> None:
        if base_interval <= 0:
            raise ValueError(f"base_interval must be positive, got {base_interval}")
        self._fetch = fetch
        self._options = options or PollingOptions()
        self._attention = attention
        self._sleep = sleep
        self._rand = rand
        self._name = name or getattr(fetch, "__qualname__", "poll")

        interval = clamp_adaptive_interval(base_interval) if self._options.adaptive_polling else base_interval
        self._state: _PollingState[T] = _PollingState(data=initial_data, interval=interval)
        self._last_fingerprint = _fingerprint(initial_data)

        self._subscribed = False
        self._enabled = self._options.enabled
        self._loop_task: asyncio.Task[None] | None = None
        self._retry_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._listeners: list[Callable[[PollingSnapshot[T]], None]] = []
        self._remove_attention_listener: Callable[[], None] | None = None
        # Set once a regained-attention refetch fired; cleared when attention is lost.
        self._attention_refetched = False

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def data(self) -> T:
        return self._state.data

    @property
    def error(self) -> ErrorInfo | None:
        return self._state.error

    @property
    def last_exception(self) -> Exception | None:
        """The exception behind :attr:`error`, for logging and debugging."""
        return self._state.last_exception

    @property
    def is_polling(self) -> bool:
        """Whether a fetch is in flight."""
        return self._state.is_polling

    @property
    def retry_count(self) -> int:
        return self._state.retry_count

    @property
    def interval(self) -> float:
        """Current effective interval in seconds."""
        return self._state.interval

    @property
    def options(self) -> PollingOptions:
        return self._options

    @property
    def running(self) -> bool:
        return self._subscribed

    @property
    def retry_pending(self) -> bool:
        return self._retry_task is not None and not self._retry_task.done()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = value

    def snapshot(self) -> PollingSnapshot[T]:
        return PollingSnapshot(
            data=self._state.data,
            error=self._state.error,
            is_polling=self._state.is_polling,
            retry_count=self._state.retry_count,
            interval=self._state.interval,
            confirmed_seq=self._state.confirmed_seq,
        )

    def add_listener(self, listener: Callable[[PollingSnapshot[T]], None]) -> Callable[[], None]:
        """Call *listener* with a snapshot after every state change.

        Returns a callable that removes the listener.
        """
        self._listeners.append(listener)

        def _remove() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _remove

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> PollingEngine[T]:
        """Fetch immediately and begin the schedule. Requires a running loop."""
        if self._subscribed:
            return self
        loop = asyncio.get_running_loop()
        self._subscribed = True
        self._state.is_polling = False
        self._attention_refetched = False
        if self._attention is not None:
            self._remove_attention_listener = self._attention.add_listener(self._on_attention)
        _logger.debug("Polling %s started (interval=%.1fs)", self._name, self._state.interval)
        self._spawn(self._poll(FetchReason.INITIAL))
        self._loop_task = loop.create_task(self._run_schedule(), name=f"voltwatch-poll-{self._name}")
        return self

    def stop(self) -> None:
        """Stop polling. No state changes happen after this returns."""
        if not self._subscribed:
            return
        self._subscribed = False
        if self._remove_attention_listener is not None:
            self._remove_attention_listener()
            self._remove_attention_listener = None
        for task in (self._loop_task, self._retry_task, *self._tasks):
            if task is not None and not task.done():
                task.cancel()
        self._loop_task = None
        self._retry_task = None
        self._tasks.clear()
        _logger.debug("Polling %s stopped", self._name)

    async def __aenter__(self) -> PollingEngine[T]:
        return self.start()

    async def __aexit__(self, *exc: Any) -> None:
        self.stop()

    def retry(self) -> asyncio.Task[None] | None:
        """Reset the failure state and fetch right away, outside the schedule.

        Returns the task running the fetch, or ``None`` when the engine is
        stopped.
        """
        if not self._subscribed:
            return None
        self._cancel_retry()
        self._state.retry_count = 0
        self._state.error = None
        self._state.last_exception = None
        self._notify()
        return self._spawn(self._poll(FetchReason.MANUAL))

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _cancel_retry(self) -> None:
        if self._retry_task is not None and not self._retry_task.done():
            self._retry_task.cancel()
        self._retry_task = None

    def _host_hidden(self) -> bool:
        return self._attention is not None and not self._attention.visible

    def _should_skip_tick(self) -> bool:
        if not self._enabled:
            return True
        if self._options.pause_when_hidden and self._host_hidden():
            return True
        return self._state.is_polling or self.retry_pending

    async def _run_schedule(self) -> None:
        while self._subscribed:
            await self._sleep(self._state.interval)
            if not self._subscribed:
                return
            if self._should_skip_tick():
                continue
            self._spawn(self._poll(FetchReason.TICK))

    async def _retry_after(self, delay: float) -> None:
        await self._sleep(delay)
        if not self._subscribed:
            return
        self._retry_task = None
        await self._poll(FetchReason.RETRY)

    def _schedule_retry(self, attempt: int) -> float:
        delay = backoff_delay(attempt, self._options.retry_delay, exponential=self._options.exponential_backoff)
        delay = apply_jitter(delay, self._options.jitter_range, self._rand())
        self._cancel_retry()
        self._retry_task = self._spawn(self._retry_after(delay))
        return delay

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def _poll(self, reason: FetchReason) -> None:
        if not self._subscribed or self._state.is_polling:
            return
        if reason in _SCHEDULED_REASONS and self._options.pause_when_hidden and self._host_hidden():
            _logger.debug("Polling %s: skipping %s fetch while hidden", self._name, reason)
            return

        self._state.is_polling = True
        self._notify()
        try:
            data = await self._fetch()
        except Exception as exc:
            if not self._subscribed:
                return
            self._state.is_polling = False
            self._handle_failure(exc, reason)
        else:
            if not self._subscribed:
                return
            self._state.is_polling = False
            self._handle_success(data)
        self._notify()

    def _handle_success(self, data: T) -> None:
        self._state.data = data
        self._state.confirmed_seq += 1
        self._state.error = None
        self._state.last_exception = None
        self._state.retry_count = 0

        fingerprint = _fingerprint(data)
        changed = fingerprint != self._last_fingerprint
        self._last_fingerprint = fingerprint
        if self._options.adaptive_polling:
            previous = self._state.interval
            self._state.interval = next_adaptive_interval(previous, changed=changed)
            if self._state.interval != previous:
                _logger.debug(
                    "Polling %s: interval %.1fs -> %.1fs (changed=%s)",
                    self._name,
                    previous,
                    self._state.interval,
                    changed,
                )

        if self._options.on_success is not None:
            try:
                self._options.on_success(data)
            except Exception:
                _logger.exception("Polling %s: on_success callback failed", self._name)

    def _handle_failure(self, exc: Exception, reason: FetchReason) -> None:
        info = classify_error(exc)
        self._state.retry_count += 1
        attempt = self._state.retry_count

        if self._options.on_error is not None:
            try:
                self._options.on_error(exc, attempt)
            except Exception:
                _logger.exception("Polling %s: on_error callback failed", self._name)

        if info.retryable and attempt <= self._options.max_retries:
            delay = self._schedule_retry(attempt)
            _logger.debug(
                "Polling %s: %s fetch failed (%s), retry %d/%d in %.2fs",
                self._name,
                reason,
                info.kind,
                attempt,
                self._options.max_retries,
                delay,
            )
            return

        self._state.error = info
        self._state.last_exception = exc
        _logger.warning(
            "Polling %s failed after %d attempt(s): %s",
            self._name,
            attempt,
            info.message,
        )

    # ------------------------------------------------------------------
    # Host attention
    # ------------------------------------------------------------------

    def _on_attention(self, event: AttentionEvent) -> None:
        if not self._subscribed:
            return
        if event in (AttentionEvent.HIDDEN, AttentionEvent.BLUR):
            self._attention_refetched = False
            if event == AttentionEvent.HIDDEN and self._options.pause_when_hidden:
                self._cancel_retry()
            return

        if event == AttentionEvent.VISIBLE:
            wants_refetch = self._options.pause_when_hidden
        else:
            wants_refetch = self._options.refetch_on_focus and not self._host_hidden()

        if not self._enabled:
            return
        if wants_refetch and not self._attention_refetched:
            self._attention_refetched = True
            self._spawn(self._poll(FetchReason.VISIBLE if event == AttentionEvent.VISIBLE else FetchReason.FOCUS))

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                _logger.exception("Polling %s: listener failed", self._name)
