"""
Data Models Package

This package contains all Pydantic models used in Daybook.
Everything the store persists conforms to these schemas.
"""

from daybook.models.record import (
    CURRENT_BACKUP_VERSION,
    LEGACY_RECORDS_ONLY_VERSION,
    BackupData,
    CustomExpenseStructure,
    DailyRecord,
    ExpenseCategory,
    ExpenseItem,
    ExpenseStructureItem,
    GasConfig,
    GasLog,
    GasLogType,
    GasStock,
    calculate_category_total,
    calculate_total_expenses,
    compute_gas_stock,
    generate_new_record_expenses,
    new_id,
    round_money,
    structure_to_document,
)
from daybook.models.defaults import default_expense_structure
from daybook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "CURRENT_BACKUP_VERSION",
    "LEGACY_RECORDS_ONLY_VERSION",
    "BackupData",
    "CustomExpenseStructure",
    "DailyRecord",
    "ExpenseCategory",
    "ExpenseItem",
    "ExpenseStructureItem",
    "GasConfig",
    "GasLog",
    "GasLogType",
    "GasStock",
    "calculate_category_total",
    "calculate_total_expenses",
    "compute_gas_stock",
    "default_expense_structure",
    "generate_new_record_expenses",
    "new_id",
    "round_money",
    "structure_to_document",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
