"""Time helpers: naive-UTC timestamps and business-day arithmetic."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

# Monday=0 ... Friday=4
_WEEKEND = frozenset({5, 6})


def utcnow() -> datetime:
    """Current UTC time without tzinfo, matching the naive DateTime columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def add_business_days(start: datetime, business_days: int) -> datetime:
    """Walk forward one calendar day at a time, counting only weekdays.

    Holidays are not modelled. The time of day of `start` is preserved.
    """
    current = start
    added = 0
    while added < business_days:
        current += timedelta(days=1)
        if current.weekday() not in _WEEKEND:
            added += 1
    return current
