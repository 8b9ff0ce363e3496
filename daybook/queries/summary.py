"""
Report Summary

Aggregates a set of records into the figures a restaurant owner checks:
totals, prime cost (food + labor as a share of sales), averages, and the
best and worst days.

Every amount is rounded to 2 decimals before it is summed as Decimal.
Percentages are 0 when there are no sales.
"""

from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from daybook.models.record import DailyRecord, round_money


class DayFigure(BaseModel):
    """A single day's value for one metric."""
    date: str
    amount: float


class NamedTotal(BaseModel):
    name: str
    total: float


class LedgerSummary(BaseModel):
    """Figures for one reporting period."""

    record_count: int = 0
    total_sales: float = 0.0
    total_expenses: float = 0.0
    total_labor_cost: float = 0.0
    total_food_cost: float = 0.0
    net_profit: float = 0.0

    profit_margin: float = Field(default=0.0, description="Net profit as % of sales")
    labor_cost_percentage: float = 0.0
    food_cost_percentage: float = 0.0
    prime_cost_percentage: float = Field(
        default=0.0,
        description="(Food + labor) as % of sales"
    )

    average_daily_sales: float = 0.0
    average_daily_profit: float = 0.0

    busiest_day: Optional[DayFigure] = None
    most_profitable_day: Optional[DayFigure] = None
    least_profitable_day: Optional[DayFigure] = None

    # Highest first; zero totals are left out
    category_totals: list[NamedTotal] = Field(default_factory=list)
    item_totals: list[NamedTotal] = Field(default_factory=list)


def _percent(part: Decimal, whole: Decimal) -> float:
    if whole <= 0:
        return 0.0
    return round_money(float(part / whole * 100))


def _ranked(totals: dict[str, Decimal]) -> list[NamedTotal]:
    ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
    return [NamedTotal(name=name, total=float(total)) for name, total in ranked]


def _dec(value: float) -> Decimal:
    # Rounded to cents first, like the per-record totals
    return Decimal(str(round_money(value)))


def summarize(
    records: Iterable[DailyRecord],
    food_cost_categories: Iterable[str] = (),
    labor_category: str = "Labours",
) -> LedgerSummary:
    """
    Summarize records for a report.

    Args:
        records: The period's records (already filtered)
        food_cost_categories: Category names counted as food cost (exact match)
        labor_category: Category counted as labor cost (case-insensitive)
    """
    records = list(records)
    food_categories = set(food_cost_categories)
    labor_key = labor_category.lower()

    total_sales = Decimal("0")
    total_expenses = Decimal("0")
    labor = Decimal("0")
    food = Decimal("0")
    category_totals: dict[str, Decimal] = {}
    item_totals: dict[str, Decimal] = {}

    busiest = most_profitable = least_profitable = None

    for record in records:
        sales = _dec(record.total_sales)
        expenses = _dec(record.total_expenses)
        profit = sales - expenses
        total_sales += sales
        total_expenses += expenses

        for category in record.expenses:
            category_total = _dec(category.total)
            if category.name.lower() == labor_key:
                labor += category_total
            if category.name in food_categories:
                food += category_total
            if category_total > 0:
                category_totals[category.name] = (
                    category_totals.get(category.name, Decimal("0")) + category_total
                )
            for item in category.items:
                if item.amount > 0:
                    item_totals[item.name] = (
                        item_totals.get(item.name, Decimal("0")) + _dec(item.amount)
                    )

        # Ties keep the earliest record seen
        if busiest is None or sales > busiest[1]:
            busiest = (record.date, sales)
        if most_profitable is None or profit > most_profitable[1]:
            most_profitable = (record.date, profit)
        if least_profitable is None or profit < least_profitable[1]:
            least_profitable = (record.date, profit)

    def day(figure) -> Optional[DayFigure]:
        if figure is None:
            return None
        return DayFigure(date=figure[0], amount=float(figure[1]))

    count = len(records)
    net_profit = total_sales - total_expenses
    return LedgerSummary(
        record_count=count,
        total_sales=float(total_sales),
        total_expenses=float(total_expenses),
        total_labor_cost=float(labor),
        total_food_cost=float(food),
        net_profit=float(net_profit),
        profit_margin=_percent(net_profit, total_sales),
        labor_cost_percentage=_percent(labor, total_sales),
        food_cost_percentage=_percent(food, total_sales),
        prime_cost_percentage=_percent(labor + food, total_sales),
        average_daily_sales=round_money(float(total_sales / count)) if count else 0.0,
        average_daily_profit=round_money(float(net_profit / count)) if count else 0.0,
        busiest_day=day(busiest),
        most_profitable_day=day(most_profitable),
        least_profitable_day=day(least_profitable),
        category_totals=_ranked(category_totals),
        item_totals=_ranked(item_totals),
    )
