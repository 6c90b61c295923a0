"""Runtime settings read from the environment."""

import os
from datetime import UTC, datetime, timedelta, timezone

DEFAULT_UTC_OFFSET_MINUTES = 345  # Nepal Standard Time
DEFAULT_MAX_TRANSACTION_ATTEMPTS = 5
DEFAULT_STATS_WINDOW_DAYS = 30


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def local_timezone() -> timezone:
    """Fixed offset the municipality schedules pickups in."""
    minutes = _int_env("PICKUPS_UTC_OFFSET_MINUTES", DEFAULT_UTC_OFFSET_MINUTES)
    return timezone(timedelta(minutes=minutes))


def max_transaction_attempts() -> int:
    return max(1, _int_env("PICKUPS_MAX_TRANSACTION_ATTEMPTS", DEFAULT_MAX_TRANSACTION_ATTEMPTS))


def stats_window_days() -> int:
    return max(1, _int_env("PICKUPS_STATS_WINDOW_DAYS", DEFAULT_STATS_WINDOW_DAYS))


def utc_now() -> datetime:
    return datetime.now(UTC)
