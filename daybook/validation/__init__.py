"""Validation package."""

from daybook.validation.validator import (
    is_backup_data,
    is_custom_structure,
    is_daily_record,
    is_daily_record_list,
    is_expense_category,
    is_expense_item,
    is_expense_structure_item,
    is_gas_config,
    is_gas_log,
)

__all__ = [
    "is_backup_data",
    "is_custom_structure",
    "is_daily_record",
    "is_daily_record_list",
    "is_expense_category",
    "is_expense_item",
    "is_expense_structure_item",
    "is_gas_config",
    "is_gas_log",
]
