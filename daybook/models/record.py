"""
Core Ledger Models for Daybook

These models define the current in-memory shape of everything the
store persists. They are designed to:
1. Be the ONLY shape downstream code ever sees (legacy shapes are
   resolved by the migrator before a model is built)
2. Round-trip losslessly through the JSON document format
3. Keep money arithmetic free of floating-point drift

DESIGN DECISION: Field names are snake_case in Python and camelCase on
disk (aliases). The on-disk names are a published format: backups made
by any app version must stay readable.
"""

import math
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


CURRENT_BACKUP_VERSION = 2
LEGACY_RECORDS_ONLY_VERSION = 0

_CENT = Decimal("0.01")


def new_id() -> str:
    """Opaque unique identity for categories, items and gas logs."""
    return str(uuid4())


def _to_cents(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(_CENT, rounding=ROUND_HALF_UP)


def round_money(value: float) -> float:
    """Round a currency amount to 2 decimals (half-up)."""
    return float(_to_cents(value))


def _sum_money(amounts) -> float:
    # Each amount is rounded to cents before it is added, so the Decimal
    # sum is exact and does not depend on the order of the amounts.
    return float(sum((_to_cents(amount) for amount in amounts), Decimal("0")))


class LedgerModel(BaseModel):
    """Base for every persisted entity: camelCase on disk, extras ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_document(self) -> dict:
        """Serialize to the JSON-ready on-disk document."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# RECORDS
# =============================================================================

class ExpenseItem(LedgerModel):
    """A single expense line, optionally with attached bill photos."""

    id: str = Field(default_factory=new_id)
    name: str
    amount: float = Field(
        default=0.0,
        description="Non-negative currency amount"
    )
    bill_photos: list[str] = Field(
        default_factory=list,
        description="Base64 encoded images"
    )

    @property
    def has_photo(self) -> bool:
        return len(self.bill_photos) > 0


class ExpenseCategory(LedgerModel):
    """A named group of expense items. Item order is display order."""

    id: str = Field(default_factory=new_id)
    name: str
    items: list[ExpenseItem] = Field(default_factory=list)

    @property
    def total(self) -> float:
        return _sum_money(item.amount for item in self.items)


class DailyRecord(LedgerModel):
    """
    One calendar day of sales and expenses.

    The id IS the date ("YYYY-MM-DD"), which makes the date unique.
    Night sales are derived, never stored.
    """

    id: str
    date: str
    total_sales: float = 0.0
    morning_sales: float = 0.0
    is_closed: bool = False
    expenses: list[ExpenseCategory] = Field(default_factory=list)

    @classmethod
    def for_date(cls, date: str, **fields) -> "DailyRecord":
        """Build a record whose identity is its date."""
        return cls(id=date, date=date, **fields)

    @property
    def night_sales(self) -> float:
        return round_money(self.total_sales - self.morning_sales)

    @property
    def total_expenses(self) -> float:
        return calculate_total_expenses(self)

    @property
    def profit(self) -> float:
        return round_money(self.total_sales - self.total_expenses)


def calculate_total_expenses(record: Optional[DailyRecord]) -> float:
    """
    Sum every item amount in a record, rounded to 2 decimals.

    [0.1, 0.2] sums to 0.3, not 0.30000000000000004.
    """
    if record is None:
        return 0.0
    return _sum_money(
        item.amount
        for category in record.expenses
        for item in category.items
    )


def calculate_category_total(category: ExpenseCategory) -> float:
    """Sum of one category's items, rounded to 2 decimals."""
    return category.total


# =============================================================================
# CUSTOM STRUCTURE (template for new records)
# =============================================================================

class ExpenseStructureItem(LedgerModel):
    """Template entry: an item name and the amount new records start with."""

    name: str
    default_value: float = 0.0


CustomExpenseStructure = dict[str, list[ExpenseStructureItem]]


def structure_to_document(structure: CustomExpenseStructure) -> dict:
    """Serialize a structure mapping to its on-disk form."""
    return {
        category: [item.to_document() for item in items]
        for category, items in structure.items()
    }


def generate_new_record_expenses(
    structure: CustomExpenseStructure,
) -> list[ExpenseCategory]:
    """
    Build the expense categories for a new record from the template.

    Every category and item gets a fresh id; amounts start at the
    template's default value.
    """
    return [
        ExpenseCategory(
            name=category_name,
            items=[
                ExpenseItem(name=entry.name, amount=entry.default_value or 0)
                for entry in entries
            ],
        )
        for category_name, entries in structure.items()
    ]


# =============================================================================
# GAS CYLINDER LEDGER
# =============================================================================

class GasLogType(str, Enum):
    """Cylinder stock events."""
    REFILL = "REFILL"    # Full cylinders delivered (stock goes up)
    CONNECT = "CONNECT"  # Full cylinders connected to the stove (stock goes down)


class GasLog(LedgerModel):
    """A single cylinder stock event."""

    id: str = Field(default_factory=new_id)
    date: str = Field(
        ...,
        description="ISO timestamp of the event"
    )
    type: GasLogType
    count: int = Field(
        ...,
        ge=0,
        description="Number of cylinders involved"
    )
    notes: Optional[str] = None

    @property
    def stock_delta(self) -> int:
        return self.count if self.type == GasLogType.REFILL else -self.count


class GasConfig(LedgerModel):
    """How many cylinders exist and how many are connected at once."""

    total_cylinders: int = Field(default=6, ge=0)
    cylinders_per_bank: int = Field(default=2, ge=0)


# Connect events older than this do not count towards average usage
USAGE_WINDOW_DAYS = 60


class GasStock(BaseModel):
    """Derived cylinder counts and usage figures."""

    current_stock: int
    empty_cylinders: int
    active_cylinders: int
    avg_daily_usage: float = 0.0
    # None when no cylinder was ever connected
    days_since_last_swap: Optional[int] = None
    projected_days_left: int = 0


def _log_time(log: GasLog) -> Optional[datetime]:
    """Naive local datetime of a log, or None if its date does not parse."""
    try:
        moment = datetime.fromisoformat(log.date.replace("Z", "+00:00"))
    except ValueError:
        return None
    if moment.tzinfo is not None:
        moment = moment.astimezone().replace(tzinfo=None)
    return moment


def _whole_days(start: datetime, end: datetime) -> int:
    return (end - start) // timedelta(days=1)


def compute_gas_stock(
    logs: list[GasLog],
    config: GasConfig,
    now: Optional[datetime] = None,
) -> GasStock:
    """
    Derive the full-cylinder stock and usage from the event history.

    Stock may go negative in the raw sum when a refill was never
    logged; it is floored at zero for display.

    Average daily usage is the cylinders connected in the last
    USAGE_WINDOW_DAYS divided by the whole days (at least 1) from the
    oldest of those connects until now. Projected days left is the
    stock divided by that average, rounded down.
    """
    now = now or datetime.now()

    raw_stock = sum(log.stock_delta for log in logs)
    current_stock = max(0, raw_stock)
    empty = max(0, config.total_cylinders - config.cylinders_per_bank - current_stock)

    connects = []
    for log in logs:
        moment = _log_time(log)
        if log.type == GasLogType.CONNECT and moment is not None:
            connects.append((moment, log.count))
    connects.sort(reverse=True)

    days_since_last_swap = None
    avg_daily_usage = 0.0
    if connects:
        days_since_last_swap = _whole_days(connects[0][0], now)
        window_start = now - timedelta(days=USAGE_WINDOW_DAYS)
        recent = [(moment, count) for moment, count in connects if moment >= window_start]
        if recent:
            span = max(1, _whole_days(recent[-1][0], now))
            avg_daily_usage = sum(count for _, count in recent) / span

    projected_days_left = 0
    if avg_daily_usage > 0:
        projected_days_left = math.floor(current_stock / avg_daily_usage)

    return GasStock(
        current_stock=current_stock,
        empty_cylinders=empty,
        active_cylinders=config.cylinders_per_bank,
        avg_daily_usage=avg_daily_usage,
        days_since_last_swap=days_since_last_swap,
        projected_days_left=projected_days_left,
    )


# =============================================================================
# BACKUP DOCUMENT
# =============================================================================

class BackupData(LedgerModel):
    """
    The portable backup document.

    version is a format tag: 0 = bare records array, 1 = string-list
    structure, 2 = {name, defaultValue} structure.
    """

    version: int = CURRENT_BACKUP_VERSION
    records: list[DailyRecord] = Field(default_factory=list)
    custom_structure: CustomExpenseStructure = Field(default_factory=dict)

    # Optional: only present when the exporting app had gas data
    gas_logs: Optional[list[GasLog]] = None
    gas_config: Optional[GasConfig] = None
