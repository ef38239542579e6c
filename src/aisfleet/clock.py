"""Freshness clock.

Every component reads time through these helpers so tests can inject a fixed
clock and the registry never depends on processing wall-clock directly.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

Clock = Callable[[], datetime]
"""Callable returning the current time as a tz-aware UTC datetime."""

MonotonicClock = Callable[[], float]

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1e11


def utcnow() -> datetime:
    return datetime.now(UTC)


def monotonic() -> float:
    return time.monotonic()


def parse_timestamp(value: Any) -> datetime | None:
    """Best-effort conversion of a wire timestamp to a UTC datetime.

    Accepts datetimes, ISO-8601 strings (a trailing ``Z`` is allowed) and epoch
    numbers in seconds or milliseconds. Returns ``None`` for anything else.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        ts = float(value)
        if ts <= 0:
            return None
        if ts > _MS_THRESHOLD:
            ts /= 1000.0
        return datetime.fromtimestamp(ts, tz=UTC)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    return None


def isoformat(value: datetime) -> str:
    """Format as ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    utc = value.astimezone(UTC)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"
