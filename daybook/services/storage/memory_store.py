"""
In-Memory Storage Implementation

Dict-backed store for tests and throwaway sessions. Documents are kept as
JSON text so callers can never mutate stored state through a returned dict.

It keeps the all-or-nothing bulk_put contract but has no multi-collection
transaction, so supports_atomic_replace is False and restores take the
sequential clear-then-insert path.
"""

import json
from typing import Iterable, Optional

from daybook.services.storage.interface import (
    CURRENT_COLLECTIONS,
    BatchWriteError,
    LedgerStoreInterface,
    StorageError,
    encode_document,
)


class InMemoryLedgerStore(LedgerStoreInterface):
    """In-memory implementation of the ledger store."""

    supports_atomic_replace = False

    def __init__(self):
        self._collections: dict[str, dict[str, str]] = {
            name: {} for name in CURRENT_COLLECTIONS
        }
        self.is_open = False

    def _collection(self, collection: str) -> dict[str, str]:
        try:
            return self._collections[collection]
        except KeyError:
            raise StorageError(f"Unknown collection: {collection}")

    async def open(self) -> None:
        self.is_open = True

    async def close(self) -> None:
        self.is_open = False

    async def get_all(self, collection: str) -> list[dict]:
        rows = self._collection(collection)
        return [json.loads(rows[key]) for key in sorted(rows)]

    async def get(self, collection: str, key: str) -> Optional[dict]:
        text = self._collection(collection).get(key)
        return json.loads(text) if text is not None else None

    async def put(self, collection: str, document: dict) -> None:
        rows = self._collection(collection)
        key, text = encode_document(document)
        rows[key] = text

    async def delete(self, collection: str, key: str) -> None:
        self._collection(collection).pop(key, None)

    async def bulk_put(self, collection: str, documents: Iterable[dict]) -> None:
        rows = self._collection(collection)
        documents = list(documents)
        try:
            encoded = [encode_document(doc) for doc in documents]
        except StorageError as e:
            raise BatchWriteError(
                f"Bulk write of {len(documents)} documents to {collection} failed: {e}"
            )
        rows.update(encoded)

    async def clear(self, collection: str) -> None:
        self._collection(collection).clear()
