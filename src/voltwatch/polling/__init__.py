"""Adaptive, attention-aware polling of remote state."""

from voltwatch.polling.attention import AttentionEvent, HostAttention
from voltwatch.polling.engine import FetchReason, PollingEngine, PollingSnapshot
from voltwatch.polling.options import (
    PollingOptions,
    apply_jitter,
    backoff_delay,
    clamp_adaptive_interval,
    next_adaptive_interval,
)

__all__ = [
    "AttentionEvent",
    "FetchReason",
    "HostAttention",
    "PollingEngine",
    "PollingOptions",
    "PollingSnapshot",
    "apply_jitter",
    "backoff_delay",
    "clamp_adaptive_interval",
    "next_adaptive_interval",
]
