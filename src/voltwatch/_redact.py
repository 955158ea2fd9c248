"""Helpers for safe debug logging.

voltwatch carries a VoltTime bearer key and a Supabase anon key on every
request, and VoltTime payloads include hardware identifiers. Payloads and
headers pass through :func:`redact_for_log` before they reach DEBUG logs.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

REDACTED = "<redacted>"

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "apikey",
        "api_key",
        "authorization",
        "cookie",
        "set-cookie",
        "password",
        "token",
        "access_token",
        "refresh_token",
        # VoltTime hardware identifiers
        "uuid",
        "identity",
    }
)

# Bearer credentials can show up under any key, e.g. echoed request headers.
_BEARER_RE = re.compile(r"\bBearer\s+\S+", re.IGNORECASE)


def _redact_string(value: str, max_string: int) -> str:
    value = _BEARER_RE.sub(f"Bearer {REDACTED}", value)
    if len(value) > max_string:
        return f"{value[:max_string]}…<truncated>"
    return value


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"
    if value is None or isinstance(value, (int, float, bool)):
        return value
    if isinstance(value, str):
        return _redact_string(value, max_string)
    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        return {
            str(k): REDACTED
            if str(k).lower() in _SENSITIVE_VALUE_KEYS
            else redact_for_log(v, max_string=max_string, _depth=_depth + 1)
            for k, v in value.items()
        }

    if isinstance(value, Sequence) and not isinstance(value, bytearray):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)
