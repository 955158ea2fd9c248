"""Client configuration for voltwatch."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from voltwatch._constants import RATE_LIMIT_MAX_ENTRIES, RATE_LIMIT_SWEEP_INTERVAL, VOLTTIME_BASE_URL
from voltwatch.exceptions import VoltwatchConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class VoltwatchConfig:
    """Client configuration.

    Parameters
    ----------
    volttime_team_id : str
        VoltTime team the chargers belong to.
    volttime_api_key : str
        Bearer token for the VoltTime API.
    supabase_url : str
        Base URL of the Supabase project holding charger metadata.
    supabase_key : str
        Anon (or service) key sent as ``apikey`` and bearer token.
    volttime_base_url : str
        VoltTime API base URL.
    request_timeout : float
        Total timeout in seconds for a single outbound HTTP request.
    rate_limit_max_entries : int
        Capacity of the rate limiter's LRU cache.
    rate_limit_sweep_interval : float
        Seconds between sweeps of expired rate limit entries.
    production : bool
        Enables production-only behaviour (HSTS header on API responses).
    api_trace_enabled : bool
        Log redacted request/response payloads at DEBUG level.
    """

    volttime_team_id: str
    volttime_api_key: str
    supabase_url: str
    supabase_key: str
    volttime_base_url: str = VOLTTIME_BASE_URL
    request_timeout: float = 10.0
    rate_limit_max_entries: int = RATE_LIMIT_MAX_ENTRIES
    rate_limit_sweep_interval: float = RATE_LIMIT_SWEEP_INTERVAL
    production: bool = False
    api_trace_enabled: bool = False

    def __post_init__(self) -> None:
        missing = [
            name
            for name in ("volttime_team_id", "volttime_api_key", "supabase_url", "supabase_key")
            if not str(getattr(self, name) or "").strip()
        ]
        if missing:
            raise VoltwatchConfigError(f"Missing required configuration: {', '.join(missing)}")
        if self.request_timeout <= 0:
            raise VoltwatchConfigError("request_timeout must be positive")
        if self.rate_limit_max_entries < 1:
            raise VoltwatchConfigError("rate_limit_max_entries must be at least 1")

    @property
    def supabase_rest_url(self) -> str:
        """PostgREST endpoint of the Supabase project."""
        return f"{self.supabase_url.rstrip('/')}/rest/v1"

    @classmethod
    def from_env(cls, **overrides: Any) -> VoltwatchConfig:
        """Create configuration from environment variables.

        Reads ``VOLTTIME_TEAM_ID``, ``VOLTTIME_API_KEY``, ``SUPABASE_URL``
        and ``SUPABASE_ANON_KEY`` plus optional ``VOLTWATCH_*`` tuning
        variables. Explicit keyword arguments override environment values.

        Raises
        ------
        VoltwatchConfigError
            When a required value is missing or a numeric variable cannot
            be parsed.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "VOLTTIME_TEAM_ID": "volttime_team_id",
            "VOLTTIME_API_KEY": "volttime_api_key",
            "VOLTTIME_BASE_URL": "volttime_base_url",
            "SUPABASE_URL": "supabase_url",
            "SUPABASE_ANON_KEY": "supabase_key",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        try:
            timeout_env = env.get("VOLTWATCH_REQUEST_TIMEOUT")
            if timeout_env is not None and "request_timeout" not in overrides:
                config_kwargs["request_timeout"] = float(timeout_env)

            entries_env = env.get("VOLTWATCH_RATE_LIMIT_MAX_ENTRIES")
            if entries_env is not None and "rate_limit_max_entries" not in overrides:
                config_kwargs["rate_limit_max_entries"] = int(entries_env)

            sweep_env = env.get("VOLTWATCH_RATE_LIMIT_SWEEP_INTERVAL")
            if sweep_env is not None and "rate_limit_sweep_interval" not in overrides:
                config_kwargs["rate_limit_sweep_interval"] = float(sweep_env)
        except ValueError as exc:
            raise VoltwatchConfigError(f"Invalid numeric configuration: {exc}") from exc

        if "production" not in overrides:
            config_kwargs["production"] = env.get("VOLTWATCH_ENV", "").strip().lower() == "production"

        if "api_trace_enabled" not in overrides:
            config_kwargs["api_trace_enabled"] = _env_bool(
                env.get("VOLTWATCH_API_TRACE_ENABLED"),
                False,
            )

        config_kwargs.update(overrides)

        required = ("volttime_team_id", "volttime_api_key", "supabase_url", "supabase_key")
        absent = [name for name in required if name not in config_kwargs]
        if absent:
            raise VoltwatchConfigError(f"Missing required configuration: {', '.join(absent)}")

        return cls(**config_kwargs)
