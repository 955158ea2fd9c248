"""Polling options and the pure timing functions the engine is built on.

All durations are seconds. The functions here are deterministic given their
inputs (jitter takes the random sample as an argument) so the timing rules
can be tested without an event loop.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from voltwatch._constants import (
    ADAPTIVE_MAX_INTERVAL,
    ADAPTIVE_MIN_INTERVAL,
    ADAPTIVE_SLOWDOWN_FACTOR,
    ADAPTIVE_SPEEDUP_FACTOR,
    DEFAULT_RETRY_DELAY,
    MAX_BACKOFF_DELAY,
    MIN_RETRY_DELAY,
)


class PollingOptions(BaseModel):
    """Configuration of one polling subscription.

    Parameters
    ----------
    enabled : bool
        When false, scheduled ticks are skipped (the initial fetch and
        manual ``retry()`` still run).
    max_retries : int
        Consecutive failures that are retried with backoff before the error
        is surfaced and the engine waits for the next natural tick.
    retry_delay : float
        Base retry delay in seconds.
    exponential_backoff : bool
        Double the delay for every consecutive failure, capped at
        ``MAX_BACKOFF_DELAY``.
    jitter_range : float
        Fraction (0..1) of the delay randomised up or down.
    pause_when_hidden : bool
        Suspend polling while the host is hidden and refetch once when it
        becomes visible again.
    refetch_on_focus : bool
        Refetch once when the host regains focus.
    adaptive_polling : bool
        Shrink the interval when data changes and grow it when it does not,
        bounded by ``ADAPTIVE_MIN_INTERVAL`` and ``ADAPTIVE_MAX_INTERVAL``.
    on_error : callable, optional
        ``on_error(exc, attempt)`` observer for every failed fetch.
    on_success : callable, optional
        ``on_success(data)`` observer for every successful fetch.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    enabled: bool = True
    max_retries: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=DEFAULT_RETRY_DELAY, gt=0)
    exponential_backoff: bool = True
    jitter_range: float = Field(default=0.1, ge=0, le=1)
    pause_when_hidden: bool = True
    refetch_on_focus: bool = True
    adaptive_polling: bool = False
    on_error: Callable[[Exception, int], Any] | None = None
    on_success: Callable[[Any], Any] | None = None


def backoff_delay(attempt: int, retry_delay: float, *, exponential: bool = True) -> float:
    """Unjittered delay before retry number *attempt* (1-based).

    The first retry waits ``retry_delay``; with *exponential* every further
    retry doubles it. The result never exceeds ``MAX_BACKOFF_DELAY``.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    delay = retry_delay * (2 ** (attempt - 1)) if exponential else retry_delay
    return min(delay, MAX_BACKOFF_DELAY)


def apply_jitter(delay: float, jitter_range: float, sample: float) -> float:
    """Spread *delay* by ±``jitter_range`` using *sample* drawn from [0, 1).

    ``sample=0.5`` leaves the delay unchanged. The result is never below
    ``MIN_RETRY_DELAY``.
    """
    if not 0.0 <= jitter_range <= 1.0:
        raise ValueError(f"jitter_range must be within [0, 1], got {jitter_range}")
    offset = delay * jitter_range * (2.0 * sample - 1.0)
    return max(MIN_RETRY_DELAY, delay + offset)


def next_adaptive_interval(current: float, *, changed: bool) -> float:
    """Interval after a successful fetch whose content did or did not change."""
    if changed:
        return max(ADAPTIVE_MIN_INTERVAL, current * ADAPTIVE_SPEEDUP_FACTOR)
    return min(ADAPTIVE_MAX_INTERVAL, current * ADAPTIVE_SLOWDOWN_FACTOR)


def clamp_adaptive_interval(interval: float) -> float:
    return min(ADAPTIVE_MAX_INTERVAL, max(ADAPTIVE_MIN_INTERVAL, interval))
