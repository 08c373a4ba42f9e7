"""
Domain time utilities (pure).

Centralized timestamp validation and elapsed-time helpers.

Behavior and error messages must remain consistent across the domain model:
- Every timestamp handled by the engine is timezone-aware UTC.
- Elapsed days are whole 24-hour days (floor), never calendar days.
- Elapsed hours are fractional and never negative.
"""

from __future__ import annotations

from datetime import datetime, timedelta


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Enforces the rule that timestamps are UTC.

    Invariants:
    - Timestamps must be timezone-aware.
    - Timestamps must have UTC offset 0.
    """

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0)")


def hours_between(start: datetime, end: datetime) -> float:
    """
    Hours elapsed from `start` to `end`, clamped at zero.

    A `start` later than `end` (clock skew between writers) counts as "just now".
    """

    require_utc_timestamp("start", start)
    require_utc_timestamp("end", end)

    elapsed = (end - start) / timedelta(hours=1)
    return max(0.0, elapsed)


def whole_days_between(start: datetime, end: datetime) -> int:
    """
    Whole 24-hour days elapsed from `start` to `end`:

    days = floor((end - start) / 24 hours), clamped at zero.
    """

    require_utc_timestamp("start", start)
    require_utc_timestamp("end", end)

    if end <= start:
        return 0
    return int((end - start) // timedelta(days=1))
