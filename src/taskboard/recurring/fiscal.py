# src/taskboard/recurring/fiscal.py

"""
Fiscal period indexing.

The fiscal year runs April -> March and is named after the calendar year it
starts in (fiscal year 2026 = 2026-04 .. 2027-03). Completion tracking buckets
work by calendar month, keyed "YYYY-MM".

Daily and weekly tasks are not period-addressable: they have no month buckets.
"""

from __future__ import annotations

import re
from datetime import date

from dateutil.relativedelta import relativedelta

from ..core.errors import InapplicablePeriod
from .models import RecurrencePattern

FISCAL_YEAR_START_MONTH = 4
DEFAULT_DISPLAY_HORIZON_YEARS = 5

_PERIOD_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")

# Offsets into the 12-month fiscal list (0 = April).
_APPLICABLE_OFFSETS: dict[RecurrencePattern, tuple[int, ...]] = {
    RecurrencePattern.MONTHLY: tuple(range(12)),
    RecurrencePattern.QUARTERLY: (0, 3, 6, 9),
    RecurrencePattern.HALF_YEARLY: (0, 6),
    RecurrencePattern.YEARLY: (0,),
}


def period_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def parse_period_key(key: str) -> tuple[int, int]:
    m = _PERIOD_KEY_RE.match(key or "")
    if not m:
        raise InapplicablePeriod(str(key), reason="expected YYYY-MM")
    year, month = int(m.group(1)), int(m.group(2))
    if not 1 <= month <= 12:
        raise InapplicablePeriod(key, reason="month out of range")
    if not 1 <= year <= 9998:
        raise InapplicablePeriod(key, reason="year out of range")
    return year, month


def _index_of(key: str) -> int:
    year, month = parse_period_key(key)
    return year * 12 + (month - 1)


def fiscal_year_of(value: date | str) -> int:
    """Calendar year in which the fiscal year containing `value` starts."""
    if isinstance(value, date):
        year, month = value.year, value.month
    else:
        year, month = parse_period_key(value)
    return year if month >= FISCAL_YEAR_START_MONTH else year - 1


def fiscal_year_months(fiscal_year: int) -> list[str]:
    """The 12 period keys of a fiscal year, April first, March last."""
    first = date(fiscal_year, FISCAL_YEAR_START_MONTH, 1)
    return [period_key(first + relativedelta(months=i)) for i in range(12)]


def is_period_addressable(pattern: RecurrencePattern | str) -> bool:
    return RecurrencePattern.parse(pattern) in _APPLICABLE_OFFSETS


def applicable_periods(pattern: RecurrencePattern | str, fiscal_year: int) -> list[str]:
    """
    Period keys of `fiscal_year` in which a task with `pattern` is due.

    Empty for daily/weekly tasks.
    """
    offsets = _APPLICABLE_OFFSETS.get(RecurrencePattern.parse(pattern))
    if offsets is None:
        return []
    months = fiscal_year_months(fiscal_year)
    return [months[i] for i in offsets]


def is_applicable_period(pattern: RecurrencePattern | str, key: str) -> bool:
    return key in applicable_periods(pattern, fiscal_year_of(key))


def is_future_period(key: str, today: date) -> bool:
    """Strictly after the month containing `today`."""
    return _index_of(key) > _index_of(period_key(today))


def periods_through(pattern: RecurrencePattern | str, fiscal_year: int, today: date) -> list[str]:
    """Applicable periods of `fiscal_year` up to and including the current month."""
    return [k for k in applicable_periods(pattern, fiscal_year) if not is_future_period(k, today)]


def display_periods(
    pattern: RecurrencePattern | str,
    today: date,
    horizon_years: int = DEFAULT_DISPLAY_HORIZON_YEARS,
) -> list[str]:
    """
    Periods offered to users for new entries: the current month forward,
    `horizon_years` fiscal years deep. Past periods are left out here but
    remain valid for direct lookups.
    """
    p = RecurrencePattern.parse(pattern)
    if not is_period_addressable(p):
        return []
    current = _index_of(period_key(today))
    first_fy = fiscal_year_of(today)
    out: list[str] = []
    for fy in range(first_fy, first_fy + max(0, int(horizon_years))):
        out.extend(k for k in applicable_periods(p, fy) if _index_of(k) >= current)
    return out
