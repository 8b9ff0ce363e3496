"""Reporting queries: date ranges and period summaries."""

from daybook.queries.ranges import (
    ALL_YEARS,
    DateRange,
    available_years,
    filter_records,
    last_month_range,
    last_week_range,
    reportable_records,
    subtract_days,
    this_month_range,
    this_week_range,
    today_string,
)
from daybook.queries.summary import (
    DayFigure,
    LedgerSummary,
    NamedTotal,
    summarize,
)

__all__ = [
    # Ranges
    "ALL_YEARS",
    "DateRange",
    "available_years",
    "filter_records",
    "last_month_range",
    "last_week_range",
    "reportable_records",
    "subtract_days",
    "this_month_range",
    "this_week_range",
    "today_string",
    # Summary
    "DayFigure",
    "LedgerSummary",
    "NamedTotal",
    "summarize",
]
