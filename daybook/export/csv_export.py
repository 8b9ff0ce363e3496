"""
CSV export for spreadsheets.

One row per non-zero expense item. The day-level columns (date, sales,
totals) are filled only on the first row of each record's block so a
spreadsheet sum over them counts each day once. A day with no non-zero
items still gets one summary row, with N/A in the item columns.
"""

import csv
import io
from datetime import date
from typing import Iterable, Optional

from daybook.models.record import DailyRecord


CSV_HEADERS = [
    "Date",
    "Total Sales",
    "Morning Sales",
    "Night Sales",
    "Total Expenses",
    "Profit/Loss",
    "Expense Category",
    "Expense Item",
    "Expense Amount",
    "Bill Photo Attached",
]

NOT_APPLICABLE = "N/A"


def _money(value: float) -> str:
    return f"{value:.2f}"


def _summary_columns(record: DailyRecord) -> list[str]:
    return [
        record.date,
        _money(record.total_sales),
        _money(record.morning_sales),
        _money(record.night_sales),
        _money(record.total_expenses),
        _money(record.profit),
    ]


def record_rows(record: DailyRecord) -> list[list[str]]:
    """Rows for one record, summary columns on the first row only."""
    summary = _summary_columns(record)
    blank = [""] * len(summary)

    rows = []
    for category in record.expenses:
        for item in category.items:
            if not item.amount:
                continue
            rows.append(
                (blank if rows else summary)
                + [
                    category.name,
                    item.name,
                    _money(item.amount),
                    "Yes" if item.has_photo else "No",
                ]
            )

    if not rows:
        rows.append(summary + [NOT_APPLICABLE] * 4)
    return rows


def records_to_csv(records: Iterable[DailyRecord]) -> str:
    """
    Render records as CSV text, oldest day first.

    Returns "" when there are no records. Fields containing a comma,
    quote or newline are quoted with embedded quotes doubled.
    """
    records = sorted(records, key=lambda r: r.date)
    if not records:
        return ""

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for record in records:
        writer.writerows(record_rows(record))
    return buffer.getvalue()


def csv_filename(prefix: str, on: Optional[date] = None) -> str:
    """e.g. daybook-export-2024-07-20.csv"""
    on = on or date.today()
    return f"{prefix}-{on.isoformat()}.csv"
