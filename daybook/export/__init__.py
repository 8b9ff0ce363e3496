"""Spreadsheet export package."""

from daybook.export.csv_export import (
    CSV_HEADERS,
    csv_filename,
    record_rows,
    records_to_csv,
)

__all__ = [
    "CSV_HEADERS",
    "csv_filename",
    "record_rows",
    "records_to_csv",
]
