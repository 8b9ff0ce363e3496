"""
SQLite Storage Implementation

DESIGN DECISION: An embedded SQLite file is the durable store because:
1. It survives process restarts with no server to run
2. It has real multi-statement transactions, so a restore can clear and
   refill the records table atomically
3. PRAGMA user_version gives us a schema version for free

Each collection is a table of (id TEXT PRIMARY KEY, doc TEXT) holding
JSON documents. The store only manages which tables exist; it never
rewrites document contents (that is the migrator's job).

All sqlite calls run on one dedicated worker thread, so the event loop
is never blocked and the connection is only ever touched by one thread.
"""

import asyncio
import functools
import json
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Optional, Union

import structlog
from pydantic import BaseModel, Field

from daybook.config import get_settings
from daybook.models.record import (
    CustomExpenseStructure,
    DailyRecord,
    structure_to_document,
)
from daybook.services.storage.interface import (
    CURRENT_COLLECTIONS,
    CUSTOM_STRUCTURE,
    RECORDS,
    STORE_VERSION,
    STRUCTURE_KEY,
    SUPERSEDED_COLLECTIONS,
    BatchWriteError,
    ConnectionError,
    LedgerStoreInterface,
    SchemaVersionError,
    StorageError,
    encode_document,
)

logger = structlog.get_logger(__name__)

MEMORY_PATH = ":memory:"


class SchemaUpgrade(BaseModel):
    """What open() changed on disk."""

    from_version: int
    to_version: int
    dropped: list[str] = Field(default_factory=list)
    created: list[str] = Field(default_factory=list)


def _quote(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _table(collection: str) -> str:
    if collection not in CURRENT_COLLECTIONS:
        raise StorageError(f"Unknown collection: {collection}")
    return _quote(collection)


@contextmanager
def _transaction(conn: sqlite3.Connection):
    """BEGIN IMMEDIATE ... COMMIT, rolled back on any exception."""
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    else:
        conn.execute("COMMIT")


class SQLiteLedgerStore(LedgerStoreInterface):
    """
    SQLite implementation of the ledger store.

    Construct once at application start and pass it to every consumer.
    """

    supports_atomic_replace = True

    def __init__(
        self,
        db_path: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        if db_path is None or timeout_seconds is None:
            store_settings = get_settings().store
            db_path = db_path or store_settings.db_path
            timeout_seconds = timeout_seconds or store_settings.timeout_seconds

        self._db_path = str(db_path)
        self._timeout = timeout_seconds
        self._conn: Optional[sqlite3.Connection] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._open_lock = asyncio.Lock()
        self.upgrade: Optional[SchemaUpgrade] = None

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def version(self) -> int:
        return STORE_VERSION

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(fn, *args))

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def open(self) -> None:
        """Open the database file and bring its collections up to date."""
        if self._conn is not None:
            return
        async with self._open_lock:
            if self._conn is not None:
                return
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1,
                    thread_name_prefix="daybook-store",
                )
            self._conn = await self._run(self._open_sync)

    def _open_sync(self) -> sqlite3.Connection:
        conn = None
        try:
            if self._db_path != MEMORY_PATH:
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            # Autocommit mode: transactions are explicit (see _transaction)
            conn = sqlite3.connect(
                self._db_path,
                timeout=self._timeout,
                isolation_level=None,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
        except (sqlite3.Error, OSError) as e:
            if conn is not None:
                conn.close()
            logger.error("store_open_failed", db_path=self._db_path, error=str(e))
            raise ConnectionError(f"Failed to open store at {self._db_path}: {e}")

        try:
            self.upgrade = self._upgrade_sync(conn)
        except Exception:
            conn.close()
            raise
        return conn

    def _upgrade_sync(self, conn: sqlite3.Connection) -> Optional[SchemaUpgrade]:
        """
        Forward-only collection upgrade.

        Drops superseded collections and creates missing ones in a single
        transaction. Document contents are never touched here.
        """
        try:
            version = conn.execute("PRAGMA user_version").fetchone()[0]
            if version > STORE_VERSION:
                raise SchemaVersionError(
                    f"Store is at version {version}, this app supports up to {STORE_VERSION}"
                )

            existing = {
                row[0]
                for row in conn.execute(
                    "SELECT name FROM sqlite_master WHERE type = 'table'"
                )
            }
            to_drop = [name for name in SUPERSEDED_COLLECTIONS if name in existing]
            to_create = [name for name in CURRENT_COLLECTIONS if name not in existing]

            if version == STORE_VERSION and not to_drop and not to_create:
                return None

            with _transaction(conn):
                for name in to_drop:
                    conn.execute(f"DROP TABLE IF EXISTS {_quote(name)}")
                for name in to_create:
                    conn.execute(
                        f"CREATE TABLE IF NOT EXISTS {_quote(name)} ("
                        "id TEXT PRIMARY KEY, "
                        "doc TEXT NOT NULL"
                        ")"
                    )
                conn.execute(f"PRAGMA user_version = {int(STORE_VERSION)}")
        except sqlite3.Error as e:
            logger.error("store_upgrade_failed", db_path=self._db_path, error=str(e))
            raise ConnectionError(f"Failed to upgrade store schema: {e}")

        upgrade = SchemaUpgrade(
            from_version=version,
            to_version=STORE_VERSION,
            dropped=to_drop,
            created=to_create,
        )
        logger.info("store_upgraded", **upgrade.model_dump())
        return upgrade

    async def close(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await self._run(conn.close)
        if self._executor is not None:
            executor, self._executor = self._executor, None
            executor.shutdown(wait=True)

    # -------------------------------------------------------------------------
    # Collection operations
    # -------------------------------------------------------------------------

    async def get_all(self, collection: str) -> list[dict]:
        await self.open()
        return await self._run(self._get_all_sync, collection)

    def _get_all_sync(self, collection: str) -> list[dict]:
        table = _table(collection)
        try:
            rows = self._conn.execute(f"SELECT doc FROM {table} ORDER BY id").fetchall()
            return [json.loads(row["doc"]) for row in rows]
        except (sqlite3.Error, ValueError) as e:
            logger.error("store_read_failed", collection=collection, error=str(e))
            raise StorageError(f"Failed to read {collection}: {e}")

    async def get(self, collection: str, key: str) -> Optional[dict]:
        await self.open()
        return await self._run(self._get_sync, collection, key)

    def _get_sync(self, collection: str, key: str) -> Optional[dict]:
        table = _table(collection)
        try:
            row = self._conn.execute(
                f"SELECT doc FROM {table} WHERE id = ? LIMIT 1",
                (key,),
            ).fetchone()
            return json.loads(row["doc"]) if row else None
        except (sqlite3.Error, ValueError) as e:
            logger.error("store_read_failed", collection=collection, key=key, error=str(e))
            raise StorageError(f"Failed to read {collection}/{key}: {e}")

    async def put(self, collection: str, document: dict) -> None:
        await self.open()
        await self._run(self._put_sync, collection, document)

    def _put_sync(self, collection: str, document: dict) -> None:
        table = _table(collection)
        key, text = encode_document(document)
        try:
            with _transaction(self._conn):
                self._upsert(table, key, text)
        except sqlite3.Error as e:
            logger.error("store_write_failed", collection=collection, key=key, error=str(e))
            raise StorageError(f"Failed to save {collection}/{key}: {e}")

    def _upsert(self, table: str, key: str, text: str) -> None:
        self._conn.execute(
            f"INSERT INTO {table} (id, doc) VALUES (?, ?) "
            "ON CONFLICT(id) DO UPDATE SET doc = excluded.doc",
            (key, text),
        )

    async def delete(self, collection: str, key: str) -> None:
        await self.open()
        await self._run(self._delete_sync, collection, key)

    def _delete_sync(self, collection: str, key: str) -> None:
        table = _table(collection)
        try:
            with _transaction(self._conn):
                self._conn.execute(f"DELETE FROM {table} WHERE id = ?", (key,))
        except sqlite3.Error as e:
            logger.error("store_delete_failed", collection=collection, key=key, error=str(e))
            raise StorageError(f"Failed to delete {collection}/{key}: {e}")

    async def bulk_put(self, collection: str, documents: Iterable[dict]) -> None:
        await self.open()
        await self._run(self._bulk_put_sync, collection, list(documents))

    def _bulk_put_sync(self, collection: str, documents: list) -> None:
        table = _table(collection)
        try:
            # Encode everything before touching the table
            encoded = [encode_document(doc) for doc in documents]
            with _transaction(self._conn):
                for key, text in encoded:
                    self._upsert(table, key, text)
        except (StorageError, sqlite3.Error) as e:
            logger.error(
                "store_bulk_write_failed",
                collection=collection,
                batch_size=len(documents),
                error=str(e),
            )
            raise BatchWriteError(
                f"Bulk write of {len(documents)} documents to {collection} failed: {e}"
            )

    async def clear(self, collection: str) -> None:
        await self.open()
        await self._run(self._clear_sync, collection)

    def _clear_sync(self, collection: str) -> None:
        table = _table(collection)
        try:
            with _transaction(self._conn):
                self._conn.execute(f"DELETE FROM {table}")
        except sqlite3.Error as e:
            logger.error("store_clear_failed", collection=collection, error=str(e))
            raise StorageError(f"Failed to clear {collection}: {e}")

    async def replace_all(
        self,
        records: Iterable[Union[DailyRecord, dict]],
        structure: CustomExpenseStructure,
    ) -> None:
        """
        Clear records, insert the new ones and replace the structure,
        all in one transaction. On failure the previous state is intact.
        """
        await self.open()
        documents = [
            r.to_document() if isinstance(r, DailyRecord) else r
            for r in records
        ]
        structure_doc = {"id": STRUCTURE_KEY, "data": structure_to_document(structure)}
        await self._run(self._replace_all_sync, documents, structure_doc)

    def _replace_all_sync(self, documents: list, structure_doc: dict) -> None:
        records_table = _table(RECORDS)
        structure_table = _table(CUSTOM_STRUCTURE)
        try:
            encoded = [encode_document(doc) for doc in documents]
            structure_key, structure_text = encode_document(structure_doc)
            with _transaction(self._conn):
                self._conn.execute(f"DELETE FROM {records_table}")
                for key, text in encoded:
                    self._upsert(records_table, key, text)
                self._upsert(structure_table, structure_key, structure_text)
        except (StorageError, sqlite3.Error) as e:
            logger.error(
                "store_replace_failed",
                record_count=len(documents),
                error=str(e),
            )
            raise StorageError(f"Failed to replace records: {e}")
