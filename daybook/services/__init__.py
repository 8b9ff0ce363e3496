"""Services package."""

from daybook.services.storage import (
    BatchWriteError,
    ConnectionError,
    InMemoryLedgerStore,
    InvalidDocumentError,
    LedgerStoreInterface,
    SchemaVersionError,
    SQLiteLedgerStore,
    StorageError,
)

__all__ = [
    # Storage services
    "BatchWriteError",
    "ConnectionError",
    "InMemoryLedgerStore",
    "InvalidDocumentError",
    "LedgerStoreInterface",
    "SchemaVersionError",
    "SQLiteLedgerStore",
    "StorageError",
]
