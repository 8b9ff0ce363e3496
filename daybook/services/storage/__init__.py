"""
Storage Services Package

Provides the abstract store interface and concrete implementations.
SQLite is the durable backend; the in-memory store backs tests.
"""

from daybook.services.storage.interface import (
    ACTIVE_YEAR_SETTING,
    BILL_UPLOAD_CATEGORIES_SETTING,
    CURRENT_COLLECTIONS,
    CUSTOM_STRUCTURE,
    FOOD_COST_CATEGORIES_SETTING,
    GAS_CONFIG_SETTING,
    GAS_LOGS_SETTING,
    RECORDS,
    SETTINGS,
    STORE_VERSION,
    STRUCTURE_KEY,
    SUPERSEDED_COLLECTIONS,
    TRACKED_ITEMS_SETTING,
    BatchWriteError,
    ConnectionError,
    InvalidDocumentError,
    LedgerStoreInterface,
    SchemaVersionError,
    StorageError,
)
from daybook.services.storage.memory_store import InMemoryLedgerStore
from daybook.services.storage.sqlite_store import SchemaUpgrade, SQLiteLedgerStore

__all__ = [
    # Interface
    "LedgerStoreInterface",
    # Setting keys
    "ACTIVE_YEAR_SETTING",
    "BILL_UPLOAD_CATEGORIES_SETTING",
    "FOOD_COST_CATEGORIES_SETTING",
    "GAS_CONFIG_SETTING",
    "GAS_LOGS_SETTING",
    "TRACKED_ITEMS_SETTING",
    # Schema
    "CURRENT_COLLECTIONS",
    "CUSTOM_STRUCTURE",
    "RECORDS",
    "SETTINGS",
    "STORE_VERSION",
    "STRUCTURE_KEY",
    "SUPERSEDED_COLLECTIONS",
    "SchemaUpgrade",
    # Exceptions
    "BatchWriteError",
    "ConnectionError",
    "InvalidDocumentError",
    "SchemaVersionError",
    "StorageError",
    # Implementations
    "InMemoryLedgerStore",
    "SQLiteLedgerStore",
]
