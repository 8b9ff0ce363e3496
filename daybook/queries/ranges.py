"""
Date range helpers for reports.

All dates are "YYYY-MM-DD" strings in local time, which compare the same
way as calendar dates. Every range helper takes an optional reference
day so reports can be reproduced for any date.
"""

import calendar
from datetime import date, timedelta
from typing import Iterable, NamedTuple, Optional

from daybook.models.record import DailyRecord, calculate_total_expenses


class DateRange(NamedTuple):
    start: str
    end: str


def today_string(today: Optional[date] = None) -> str:
    """Local date as "YYYY-MM-DD" (date.today() is already local time)."""
    return (today or date.today()).isoformat()


def subtract_days(date_string: str, days: int) -> str:
    return (date.fromisoformat(date_string) - timedelta(days=days)).isoformat()


def this_week_range(today: Optional[date] = None) -> DateRange:
    """Monday of this week through today."""
    today = today or date.today()
    start = today - timedelta(days=today.weekday())
    return DateRange(start.isoformat(), today.isoformat())


def last_week_range(today: Optional[date] = None) -> DateRange:
    """Monday through Sunday of the previous week."""
    this_week_start = this_week_range(today).start
    end = subtract_days(this_week_start, 1)
    return DateRange(subtract_days(end, 6), end)


def this_month_range(today: Optional[date] = None) -> DateRange:
    """First through last day of the current month."""
    today = today or date.today()
    last_day = calendar.monthrange(today.year, today.month)[1]
    return DateRange(
        today.replace(day=1).isoformat(),
        today.replace(day=last_day).isoformat(),
    )


def last_month_range(today: Optional[date] = None) -> DateRange:
    today = today or date.today()
    end = today.replace(day=1) - timedelta(days=1)
    return DateRange(end.replace(day=1).isoformat(), end.isoformat())


ALL_YEARS = "all"


def available_years(records: Iterable[DailyRecord]) -> list[str]:
    """Distinct "YYYY" years that have records, newest first."""
    return sorted({record.date[:4] for record in records}, reverse=True)


def reportable_records(records: Iterable[DailyRecord]) -> list[DailyRecord]:
    """
    Records that count towards reports.

    Closed days are left out. Days with no sales but some expenses stay
    in, since those are loss days.
    """
    return [
        record for record in records
        if not record.is_closed
        and (record.total_sales > 0 or calculate_total_expenses(record) > 0)
    ]


def filter_records(
    records: Iterable[DailyRecord],
    start: Optional[str] = None,
    end: Optional[str] = None,
    year: Optional[str] = None,
) -> list[DailyRecord]:
    """
    Records within [start, end] (inclusive) and, if given, in one year.

    year is a "YYYY" string as stored in the active-year setting; None
    or ALL_YEARS selects every year.

    A missing bound is open. The result is sorted by date ascending.
    """
    selected = [
        record for record in records
        if (not start or record.date >= start)
        and (not end or record.date <= end)
        and (year in (None, ALL_YEARS) or record.date.startswith(f"{year}-"))
    ]
    return sorted(selected, key=lambda r: r.date)
