# src/taskboard/recurring/scheduler.py

"""
Recurrence scheduler.

Pure date arithmetic for recurring tasks:
- next occurrence after a date,
- all occurrences inside a window (lazy or materialized),
- occurrence membership and counting.

Month-based patterns clamp to the last valid day of the target month
(Jan 31 + 1 month -> Feb 28/29) and never roll into the following month.
A date on the last day of its month means "month end", so the step after
Feb 28 is Mar 31. A series is exactly next_occurrence applied step by step:
once an occurrence lands on a month end the series stays on month ends.
"""

from __future__ import annotations

import itertools
from collections.abc import Iterator
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from .models import RecurrencePattern

_DAY_STEPS: dict[RecurrencePattern, int] = {
    RecurrencePattern.DAILY: 1,
    RecurrencePattern.WEEKLY: 7,
}

_MONTH_STEPS: dict[RecurrencePattern, int] = {
    RecurrencePattern.MONTHLY: 1,
    RecurrencePattern.QUARTERLY: 3,
    RecurrencePattern.HALF_YEARLY: 6,
    RecurrencePattern.YEARLY: 12,
}

_DESCRIPTIONS: dict[RecurrencePattern, str] = {
    RecurrencePattern.DAILY: "Every day",
    RecurrencePattern.WEEKLY: "Every week",
    RecurrencePattern.MONTHLY: "Every month",
    RecurrencePattern.QUARTERLY: "Every 3 months",
    RecurrencePattern.HALF_YEARLY: "Every 6 months",
    RecurrencePattern.YEARLY: "Every year",
}

# Shortest month; a target day below this never clamps.
_MIN_MONTH_DAYS = 28


def month_step(pattern: RecurrencePattern | str) -> int | None:
    """Months per step for month-based patterns, None for daily/weekly."""
    return _MONTH_STEPS.get(RecurrencePattern.parse(pattern))


def is_month_end(d: date) -> bool:
    return d + relativedelta(day=31) == d


def anchor_day_of(d: date) -> int:
    """
    Day-of-month the next month-based step aims for.

    A last-day-of-month date (Feb 28 in a common year, Apr 30, ...) means
    "month end", so the step returns to day 31 once months are long enough.
    """
    return 31 if is_month_end(d) else d.day


def _nth(pattern: RecurrencePattern, anchor: date, k: int) -> date:
    """
    Occurrence k of the series starting at anchor, without walking k steps.

    Until some occurrence clamps onto a month end every step keeps the anchor's
    day; from that occurrence on the target day is 31.
    """
    days = _DAY_STEPS.get(pattern)
    if days is not None:
        return anchor + timedelta(days=days * k)

    step = _MONTH_STEPS[pattern]
    day = anchor_day_of(anchor)
    if _MIN_MONTH_DAYS <= day < 31:
        for j in range(1, k):
            if is_month_end(anchor + relativedelta(months=step * j, day=day)):
                day = 31
                break
    return anchor + relativedelta(months=step * k, day=day)


def next_occurrence(pattern: RecurrencePattern | str, from_date: date) -> date:
    """One step after from_date, clamped to the target month's length."""
    p = RecurrencePattern.parse(pattern)
    days = _DAY_STEPS.get(p)
    if days is not None:
        return from_date + timedelta(days=days)
    return from_date + relativedelta(months=_MONTH_STEPS[p], day=anchor_day_of(from_date))


def iter_occurrences(
    pattern: RecurrencePattern | str,
    start_date: date,
    end_date: date | None = None,
) -> Iterator[date]:
    """Lazily yield occurrences from start_date (inclusive); unbounded if end_date is None."""
    p = RecurrencePattern.parse(pattern)
    occ = start_date
    while end_date is None or occ <= end_date:
        yield occ
        occ = next_occurrence(p, occ)


def occurrences_in_range(
    pattern: RecurrencePattern | str,
    start_date: date,
    end_date: date,
) -> list[date]:
    """All occurrences in [start_date, end_date]; empty when end_date < start_date."""
    p = RecurrencePattern.parse(pattern)
    if end_date < start_date:
        return []
    return list(iter_occurrences(p, start_date, end_date))


def next_occurrences(pattern: RecurrencePattern | str, start_date: date, count: int) -> list[date]:
    """The first `count` occurrences starting at start_date."""
    if count <= 0:
        return []
    return list(itertools.islice(iter_occurrences(pattern, start_date), count))


def occurrence_count(
    pattern: RecurrencePattern | str,
    start_date: date,
    end_date: date,
) -> int:
    """Same as len(occurrences_in_range(...)) without building the list."""
    p = RecurrencePattern.parse(pattern)
    if end_date < start_date:
        return 0

    days = _DAY_STEPS.get(p)
    if days is not None:
        return (end_date - start_date).days // days + 1

    step = _MONTH_STEPS[p]
    months_between = (end_date.year - start_date.year) * 12 + (end_date.month - start_date.month)
    k = months_between // step
    # occurrence k lands in end_date's month at most; only its day can overshoot
    while k >= 0 and _nth(p, start_date, k) > end_date:
        k -= 1
    return k + 1


def is_occurrence_date(
    pattern: RecurrencePattern | str,
    anchor_date: date,
    candidate_date: date,
) -> bool:
    """True iff candidate_date is anchor_date advanced by a whole number of steps."""
    p = RecurrencePattern.parse(pattern)
    if candidate_date < anchor_date:
        return False

    days = _DAY_STEPS.get(p)
    if days is not None:
        return (candidate_date - anchor_date).days % days == 0

    # Clamping is non-uniform near month end, so walk the series.
    for occ in iter_occurrences(p, anchor_date, candidate_date):
        if occ == candidate_date:
            return True
    return False


def describe_pattern(pattern: RecurrencePattern | str) -> str:
    return _DESCRIPTIONS[RecurrencePattern.parse(pattern)]
