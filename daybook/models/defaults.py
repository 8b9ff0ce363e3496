"""Default expense template used until the user stores their own."""

from daybook.models.record import CustomExpenseStructure, ExpenseStructureItem


def _items(*names: str) -> list[ExpenseStructureItem]:
    return [ExpenseStructureItem(name=name, default_value=0) for name in names]


def default_expense_structure() -> CustomExpenseStructure:
    """Return a fresh copy of the default template."""
    return {
        "Market Bills": _items(
            "Vegetables",
            "Plastics and Parcel",
            "Fruits",
        ),
        "Meat": _items(
            "Beef",
            "Chicken",
            "Fish",
        ),
        "Diary Expenses": _items(
            "Milk",
            "Curd",
            "Ice",
            "Eggs",
            "Snacks",
            "Tea Powder",
        ),
        "Gas": _items(
            "Cylinder Refill",
        ),
        "Labours": _items(
            "Cook",
            "Kitchen Helper",
            "Cleaning",
            "Supplier",
        ),
        "Fixed Costs": _items(
            "Daily Rent",
            "Electricity",
            "Water Bill",
        ),
    }
