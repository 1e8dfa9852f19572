"""
Timing helpers shared by logging and the orchestration loop.

- Durations use the monotonic clock (not affected by system clock changes)
- Log records get a UTC timestamp and the process uptime
"""
from __future__ import annotations

import time
from datetime import datetime, timezone

_PROCESS_START_MONOTONIC = time.monotonic()
_PROCESS_START_WALL = time.time()


def uptime_seconds() -> float:
    """Seconds since process start based on monotonic clock."""
    return time.monotonic() - _PROCESS_START_MONOTONIC


def now_ms() -> int:
    """Wall-clock UNIX timestamp in milliseconds, used to stamp steps and requests."""
    return int(time.time() * 1000)


def elapsed_ms(start_monotonic: float) -> int:
    return int((time.monotonic() - start_monotonic) * 1000)


def now_utc_iso(ms: bool = True) -> str:
    """ISO-8601 UTC timestamp string suitable for logs (e.g., 2025-08-25T12:34:56.789Z)."""
    dt = datetime.now(timezone.utc)
    if ms:
        return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return dt.isoformat().replace("+00:00", "Z")


def process_start_utc_iso() -> str:
    return datetime.fromtimestamp(_PROCESS_START_WALL, tz=timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
