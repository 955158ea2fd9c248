from __future__ import annotations

import pytest
from pydantic import ValidationError

from voltwatch.polling.options import (
    PollingOptions,
    apply_jitter,
    backoff_delay,
    clamp_adaptive_interval,
    next_adaptive_interval,
)


def test_defaults() -> None:
    options = PollingOptions()
    assert options.enabled is True
    assert options.max_retries == 3
    assert options.retry_delay == 1.0
    assert options.exponential_backoff is True
    assert options.jitter_range == 0.1
    assert options.pause_when_hidden is True
    assert options.refetch_on_focus is True
    assert options.adaptive_polling is False


@pytest.mark.parametrize(
    "field, value",
    [("max_retries", -1), ("jitter_range", 1.5), ("jitter_range", -0.1), ("retry_delay", 0)],
)
def test_rejects_out_of_range_values(field: str, value: float) -> None:
    with pytest.raises(ValidationError):
        PollingOptions(**{field: value})


def test_options_are_frozen() -> None:
    options = PollingOptions()
    with pytest.raises(ValidationError):
        options.max_retries = 5  # type: ignore[misc]


def test_exponential_backoff_doubles_and_caps() -> None:
    assert [backoff_delay(n, 1.0) for n in range(1, 8)] == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 30.0]


def test_linear_backoff_uses_base_delay() -> None:
    assert backoff_delay(5, 2.5, exponential=False) == 2.5


def test_backoff_never_exceeds_cap_even_for_large_base() -> None:
    assert backoff_delay(1, 45.0) == 30.0


def test_backoff_attempt_is_one_based() -> None:
    with pytest.raises(ValueError):
        backoff_delay(0, 1.0)


def test_jitter_midpoint_is_neutral() -> None:
    assert apply_jitter(4.0, 0.1, 0.5) == pytest.approx(4.0)


def test_jitter_stays_within_range() -> None:
    assert apply_jitter(10.0, 0.1, 0.0) == pytest.approx(9.0)
    assert apply_jitter(10.0, 0.1, 0.999999) == pytest.approx(11.0, abs=1e-4)


def test_jitter_floor() -> None:
    assert apply_jitter(0.1, 1.0, 0.0) == 0.1
    assert apply_jitter(0.05, 0.0, 0.5) == 0.1


def test_jitter_rejects_invalid_range() -> None:
    with pytest.raises(ValueError):
        apply_jitter(1.0, 2.0, 0.5)


def test_adaptive_speeds_up_on_change() -> None:
    assert next_adaptive_interval(30.0, changed=True) == pytest.approx(24.0)
    assert next_adaptive_interval(16.0, changed=True) == 15.0


def test_adaptive_slows_down_without_change() -> None:
    assert next_adaptive_interval(30.0, changed=False) == pytest.approx(33.0)
    assert next_adaptive_interval(58.0, changed=False) == 60.0


def test_clamp_adaptive_interval() -> None:
    assert clamp_adaptive_interval(5.0) == 15.0
    assert clamp_adaptive_interval(30.0) == 30.0
    assert clamp_adaptive_interval(600.0) == 60.0
