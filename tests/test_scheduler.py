# tests/test_scheduler.py

from __future__ import annotations

from datetime import date, timedelta

import pytest

from taskboard.core.errors import InvalidPattern
from taskboard.recurring.models import RecurrencePattern
from taskboard.recurring.scheduler import (
    describe_pattern,
    is_occurrence_date,
    next_occurrence,
    next_occurrences,
    occurrence_count,
    occurrences_in_range,
)

M = RecurrencePattern.MONTHLY


def test_day_and_week_steps() -> None:
    assert next_occurrence("daily", date(2025, 12, 31)) == date(2026, 1, 1)
    assert next_occurrence("weekly", date(2025, 12, 29)) == date(2026, 1, 5)


def test_monthly_clamps_to_end_of_february() -> None:
    assert next_occurrence(M, date(2025, 1, 31)) == date(2025, 2, 28)
    assert next_occurrence(M, date(2024, 1, 31)) == date(2024, 2, 29)


def test_clamped_month_end_returns_to_day_31() -> None:
    assert next_occurrence(M, date(2025, 2, 28)) == date(2025, 3, 31)
    assert next_occurrence(M, date(2024, 2, 29)) == date(2024, 3, 31)
    # Feb 28 in a leap year is not month end: plain +1 month.
    assert next_occurrence(M, date(2024, 2, 28)) == date(2024, 3, 28)


def test_longer_steps_clamp() -> None:
    assert next_occurrence("quarterly", date(2025, 11, 30)) == date(2026, 2, 28)
    assert next_occurrence("half-yearly", date(2025, 8, 31)) == date(2026, 2, 28)
    assert next_occurrence("yearly", date(2024, 2, 29)) == date(2025, 2, 28)
    assert next_occurrence("quarterly", date(2025, 1, 15)) == date(2025, 4, 15)


def test_month_end_step_is_memoryless() -> None:
    # the step depends only on the current date, not on where the series began
    assert next_occurrence(M, date(2025, 4, 30)) == date(2025, 5, 31)
    assert next_occurrence(M, date(2025, 5, 30)) == date(2025, 6, 30)
    assert next_occurrence("quarterly", date(2025, 2, 28)) == date(2025, 5, 31)


def test_occurrences_from_month_end_do_not_drift() -> None:
    assert occurrences_in_range(M, date(2025, 1, 31), date(2025, 6, 30)) == [
        date(2025, 1, 31),
        date(2025, 2, 28),
        date(2025, 3, 31),
        date(2025, 4, 30),
        date(2025, 5, 31),
        date(2025, 6, 30),
    ]
    assert occurrences_in_range(M, date(2025, 1, 30), date(2025, 4, 30)) == [
        date(2025, 1, 30),
        date(2025, 2, 28),
        date(2025, 3, 31),
        date(2025, 4, 30),
    ]
    assert occurrences_in_range(M, date(2024, 1, 15), date(2024, 4, 30))[-1] == date(2024, 4, 15)


@pytest.mark.parametrize(
    ("pattern", "start"),
    [
        (M, date(2025, 1, 30)),
        (M, date(2025, 1, 28)),
        (M, date(2024, 1, 29)),
        (M, date(2024, 1, 31)),
        ("quarterly", date(2025, 8, 30)),
        ("half-yearly", date(2024, 8, 29)),
        ("yearly", date(2024, 2, 29)),
        ("weekly", date(2025, 1, 30)),
    ],
)
def test_series_matches_stepping_next_occurrence(pattern, start: date) -> None:
    series = next_occurrences(pattern, start, 30)
    stepped = [start]
    while len(stepped) < 30:
        stepped.append(next_occurrence(pattern, stepped[-1]))
    assert series == stepped

    end = series[-1]
    assert occurrence_count(pattern, start, end) == 30
    assert occurrence_count(pattern, start, end - timedelta(days=1)) == 29
    assert all(is_occurrence_date(pattern, start, d) for d in series)


def test_empty_range_and_restartable() -> None:
    assert occurrences_in_range("weekly", date(2025, 2, 1), date(2025, 1, 1)) == []
    a = occurrences_in_range("weekly", date(2025, 1, 1), date(2025, 2, 1))
    b = occurrences_in_range("weekly", date(2025, 1, 1), date(2025, 2, 1))
    assert a == b
    assert len(a) == 5


def test_invalid_pattern() -> None:
    with pytest.raises(InvalidPattern):
        next_occurrence("fortnightly", date(2025, 1, 1))
    with pytest.raises(InvalidPattern):
        occurrences_in_range("", date(2025, 1, 1), date(2025, 2, 1))
    assert RecurrencePattern.parse(" Half_Yearly ") is RecurrencePattern.HALF_YEARLY


def test_occurrence_count_matches_enumeration() -> None:
    start_dates = [date(2024, 1, 31), date(2024, 2, 29), date(2025, 3, 15)]
    end = date(2027, 2, 27)
    for pattern in RecurrencePattern:
        for start in start_dates:
            assert occurrence_count(pattern, start, end) == len(occurrences_in_range(pattern, start, end))


def test_occurrence_count_edges() -> None:
    assert occurrence_count("daily", date(2025, 1, 1), date(2025, 1, 10)) == 10
    assert occurrence_count("weekly", date(2025, 1, 1), date(2025, 1, 14)) == 2
    assert occurrence_count(M, date(2025, 1, 31), date(2025, 2, 27)) == 1
    assert occurrence_count(M, date(2025, 1, 31), date(2025, 2, 28)) == 2
    assert occurrence_count(M, date(2025, 3, 1), date(2025, 1, 1)) == 0


def test_is_occurrence_date_walks_the_clamped_series() -> None:
    anchor = date(2025, 1, 31)
    assert is_occurrence_date(M, anchor, date(2025, 2, 28))
    assert is_occurrence_date(M, anchor, date(2025, 3, 31))
    assert not is_occurrence_date(M, anchor, date(2025, 3, 28))
    assert not is_occurrence_date(M, anchor, date(2024, 12, 31))

    assert is_occurrence_date("quarterly", date(2025, 1, 15), date(2025, 4, 15))
    assert not is_occurrence_date("quarterly", date(2025, 1, 15), date(2025, 2, 15))

    assert is_occurrence_date("weekly", date(2025, 1, 1), date(2025, 1, 15))
    assert not is_occurrence_date("weekly", date(2025, 1, 1), date(2025, 1, 16))


def test_next_occurrences_and_description() -> None:
    assert next_occurrences("weekly", date(2025, 1, 1), 3) == [
        date(2025, 1, 1),
        date(2025, 1, 8),
        date(2025, 1, 15),
    ]
    assert next_occurrences("daily", date(2025, 1, 1), 0) == []
    assert describe_pattern("quarterly") == "Every 3 months"
    assert describe_pattern(RecurrencePattern.HALF_YEARLY) == "Every 6 months"
