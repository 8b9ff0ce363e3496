"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the ledger store.
This allows us to:
1. Keep the SQLite file format an implementation detail
2. Use in-memory storage for testing
3. Keep restore/migration logic decoupled from storage implementation

The store holds three independently keyed collections of JSON documents:
- records: keyed by the record's date id
- customStructure: a single row keyed by STRUCTURE_KEY
- settings: keyed by arbitrary setting name

The store never retries. Every failure surfaces as a StorageError and
retry policy belongs to the caller.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional, Union

from daybook.models.record import (
    CustomExpenseStructure,
    DailyRecord,
    structure_to_document,
)


# Collections
RECORDS = "records"
CUSTOM_STRUCTURE = "customStructure"
SETTINGS = "settings"

# Bump STORE_VERSION whenever the set of collections changes.
STORE_VERSION = 2
CURRENT_COLLECTIONS = (RECORDS, CUSTOM_STRUCTURE, SETTINGS)
# Present in an earlier schema, dropped on upgrade, never recreated
SUPERSEDED_COLLECTIONS = ("amortizedExpenses",)

STRUCTURE_KEY = "main"

# Well-known setting keys
GAS_LOGS_SETTING = "gasLogs"
GAS_CONFIG_SETTING = "gasConfig"
FOOD_COST_CATEGORIES_SETTING = "foodCostCategories"
BILL_UPLOAD_CATEGORIES_SETTING = "billUploadCategories"
TRACKED_ITEMS_SETTING = "trackedItems"
ACTIVE_YEAR_SETTING = "activeYear"


def encode_document(document: Any) -> tuple[str, str]:
    """
    Validate and serialize one document.

    Returns (key, json_text). The key is the document's own "id".

    Raises:
        InvalidDocumentError: If the document has no string id or is not
            JSON-serializable
    """
    if not isinstance(document, dict):
        raise InvalidDocumentError(f"Document must be an object, got {type(document).__name__}")
    key = document.get("id")
    if not isinstance(key, str) or not key:
        raise InvalidDocumentError("Document has no string 'id'")
    try:
        text = json.dumps(document, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise InvalidDocumentError(f"Document {key!r} is not serializable: {e}")
    return key, text


def _record_document(record: Union[DailyRecord, dict]) -> Any:
    return record.to_document() if isinstance(record, DailyRecord) else record


class LedgerStoreInterface(ABC):
    """
    Abstract interface for the ledger store.

    Any storage implementation must implement the collection-level
    methods; the typed record/structure/setting helpers are built on them.

    Single-writer assumption: there is no locking beyond what the backend
    gives per key (last write wins). Callers sequence operations on the
    same collection when ordering matters.
    """

    # True when replace_all runs as one native transaction
    supports_atomic_replace: bool = False

    @abstractmethod
    async def open(self) -> None:
        """
        Open the store, creating or upgrading collections if needed.

        Idempotent: concurrent and repeated callers share one connection.

        Raises:
            ConnectionError: If the backend cannot be opened
            SchemaVersionError: If the store was written by a newer version
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the connection. The store may be opened again."""
        pass

    @abstractmethod
    async def get_all(self, collection: str) -> list[dict]:
        """
        Snapshot every document of a collection.

        Args:
            collection: One of CURRENT_COLLECTIONS

        Returns:
            All documents, ordered by key
        """
        pass

    @abstractmethod
    async def get(self, collection: str, key: str) -> Optional[dict]:
        """
        Retrieve a document by key.

        Returns:
            The document if found, None otherwise
        """
        pass

    @abstractmethod
    async def put(self, collection: str, document: dict) -> None:
        """
        Insert or replace a document keyed by its own id.

        Raises:
            InvalidDocumentError: If the document is malformed
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, collection: str, key: str) -> None:
        """Remove a document if present. Deleting an absent key is not an error."""
        pass

    @abstractmethod
    async def bulk_put(self, collection: str, documents: Iterable[dict]) -> None:
        """
        Insert or replace many documents as ONE unit.

        Either every document lands or none does.

        Raises:
            BatchWriteError: If any document is malformed or the write fails
        """
        pass

    @abstractmethod
    async def clear(self, collection: str) -> None:
        """Remove every document of a collection."""
        pass

    async def replace_all(
        self,
        records: Iterable[Union[DailyRecord, dict]],
        structure: CustomExpenseStructure,
    ) -> None:
        """
        Replace all records and the structure in one transaction.

        Only available when supports_atomic_replace is True.
        """
        raise NotImplementedError(
            f"{type(self).__name__} does not support atomic replace"
        )

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    async def get_all_records(self) -> list[dict]:
        """Raw record documents, possibly in a legacy shape."""
        return await self.get_all(RECORDS)

    async def save_record(self, record: DailyRecord) -> None:
        await self.put(RECORDS, record.to_document())

    async def delete_record(self, record_id: str) -> None:
        await self.delete(RECORDS, record_id)

    async def bulk_put_records(
        self,
        records: Iterable[Union[DailyRecord, dict]],
    ) -> None:
        await self.bulk_put(RECORDS, [_record_document(r) for r in records])

    async def clear_records(self) -> None:
        await self.clear(RECORDS)

    # -------------------------------------------------------------------------
    # Custom structure (singleton)
    # -------------------------------------------------------------------------

    async def get_custom_structure(self) -> Optional[dict]:
        """Raw structure mapping, possibly in a legacy shape. None if never saved."""
        row = await self.get(CUSTOM_STRUCTURE, STRUCTURE_KEY)
        return row.get("data") if row else None

    async def save_custom_structure(self, structure: CustomExpenseStructure) -> None:
        await self.put(
            CUSTOM_STRUCTURE,
            {"id": STRUCTURE_KEY, "data": structure_to_document(structure)},
        )

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    async def get_setting(self, key: str) -> Any:
        """Stored value, or None if the setting was never saved."""
        row = await self.get(SETTINGS, key)
        return row.get("value") if row else None

    async def save_setting(self, key: str, value: Any) -> None:
        await self.put(SETTINGS, {"id": key, "value": value})

    async def __aenter__(self) -> "LedgerStoreInterface":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not open the storage backend."""
    pass


class SchemaVersionError(StorageError):
    """The store was written by a newer schema version than this app knows."""
    pass


class InvalidDocumentError(StorageError):
    """A document has no usable id or cannot be serialized."""
    pass


class BatchWriteError(StorageError):
    """A bulk write was rejected as a whole; nothing from the batch landed."""
    pass
