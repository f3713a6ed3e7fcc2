from __future__ import annotations

import os
from dataclasses import dataclass

from pictionary_sync.rules import DEFAULT_POLL_INTERVAL_SEC, ROUND_DURATION_SEC, TEAM_CHANGE_DEBOUNCE_SEC


@dataclass(frozen=True, slots=True)
class SyncSettings:
    api_base_url: str
    api_token: str | None
    http_timeout_sec: float
    poll_interval_sec: float
    team_debounce_sec: float
    round_duration_sec: float


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from e


def settings_from_env() -> SyncSettings:
    return SyncSettings(
        api_base_url=os.environ.get("PICTIONARY_API_BASE_URL", "http://localhost:8000"),
        api_token=os.environ.get("PICTIONARY_API_TOKEN") or None,
        http_timeout_sec=_float_env("PICTIONARY_HTTP_TIMEOUT_S", 10.0),
        poll_interval_sec=_float_env("PICTIONARY_POLL_INTERVAL_S", DEFAULT_POLL_INTERVAL_SEC),
        # Debounce is configured in milliseconds, like the client UI timers.
        team_debounce_sec=_float_env("PICTIONARY_TEAM_DEBOUNCE_MS", TEAM_CHANGE_DEBOUNCE_SEC * 1000) / 1000,
        round_duration_sec=_float_env("PICTIONARY_ROUND_DURATION_S", ROUND_DURATION_SEC),
    )
