"""Shared fixtures and document builders for the Daybook test suite."""

import pytest

from daybook.models import (
    DailyRecord,
    ExpenseCategory,
    ExpenseItem,
    ExpenseStructureItem,
)


def make_record(
    date: str,
    total_sales: float = 0.0,
    morning_sales: float = 0.0,
    items: dict[str, list[tuple[str, float]]] = None,
    **fields,
) -> DailyRecord:
    """Build a record from {category: [(item, amount), ...]}."""
    expenses = [
        ExpenseCategory(
            id=f"{date}-{category}",
            name=category,
            items=[
                ExpenseItem(id=f"{date}-{category}-{name}", name=name, amount=amount)
                for name, amount in entries
            ],
        )
        for category, entries in (items or {}).items()
    ]
    return DailyRecord.for_date(
        date,
        total_sales=total_sales,
        morning_sales=morning_sales,
        expenses=expenses,
        **fields,
    )


def legacy_record_document(date: str, photo: str = "data:image/png;base64,AAA") -> dict:
    """A record as the oldest app version wrote it."""
    return {
        "id": date,
        "date": date,
        "totalSales": 500,
        "expenses": [
            {
                "id": "cat-1",
                "name": "Market Bills",
                "items": [
                    {"id": "item-1", "name": "Vegetables", "amount": 120, "billPhoto": photo},
                ],
            }
        ],
    }


@pytest.fixture
def sample_record() -> DailyRecord:
    return make_record(
        "2024-07-20",
        total_sales=1000,
        morning_sales=400,
        items={"Market Bills": [("Vegetables", 150)]},
    )


@pytest.fixture
def sample_structure() -> dict:
    return {
        "Market Bills": [
            ExpenseStructureItem(name="Vegetables", default_value=0),
            ExpenseStructureItem(name="Fruits", default_value=25),
        ],
        "Labours": [ExpenseStructureItem(name="Cook", default_value=600)],
    }
