# ruff: noqa: INP001

from __future__ import annotations

from datetime import datetime

import pytest

from grant_review.core.time import add_business_days, utcnow


@pytest.mark.parametrize(
    ("start", "days", "expected"),
    [
        # Friday -> next Friday
        (datetime(2026, 10, 16, 9, 30), 5, datetime(2026, 10, 23, 9, 30)),
        # Saturday -> following Friday
        (datetime(2026, 10, 17, 12, 0), 5, datetime(2026, 10, 23, 12, 0)),
        # Monday -> Monday
        (datetime(2026, 10, 19), 5, datetime(2026, 10, 26)),
        # Friday + 1 skips the weekend
        (datetime(2026, 10, 16), 1, datetime(2026, 10, 19)),
        (datetime(2026, 10, 16), 0, datetime(2026, 10, 16)),
    ],
)
def test_add_business_days_skips_weekends(start: datetime, days: int, expected: datetime) -> None:
    assert add_business_days(start, days) == expected


def test_utcnow_is_naive() -> None:
    assert utcnow().tzinfo is None
