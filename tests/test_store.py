"""
Tests for the ledger stores

SQLite tests run against a fresh database file under tmp_path. Each test
drives its async calls inside a single asyncio.run.
"""

import asyncio
import sqlite3

import pytest

from daybook.models import ExpenseStructureItem
from daybook.services.storage import (
    CUSTOM_STRUCTURE,
    RECORDS,
    SETTINGS,
    STORE_VERSION,
    BatchWriteError,
    InMemoryLedgerStore,
    InvalidDocumentError,
    SchemaVersionError,
    SQLiteLedgerStore,
    StorageError,
)
from tests.conftest import make_record


def _tables(db_path) -> set[str]:
    conn = sqlite3.connect(db_path)
    try:
        return {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
    finally:
        conn.close()


class _PragmaFailingConnection:
    row_factory = None

    def __init__(self):
        self.closed = False

    def execute(self, sql, *params):
        raise sqlite3.OperationalError("disk I/O error")

    def close(self):
        self.closed = True


def _user_version(db_path) -> int:
    conn = sqlite3.connect(db_path)
    try:
        return conn.execute("PRAGMA user_version").fetchone()[0]
    finally:
        conn.close()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "daybook.db")


@pytest.fixture(params=["sqlite", "memory"])
def make_store(request, db_path):
    """Factory for each store implementation."""
    def factory():
        if request.param == "sqlite":
            return SQLiteLedgerStore(db_path=db_path, timeout_seconds=1.0)
        return InMemoryLedgerStore()
    return factory


class TestStoreContract:
    """Behaviour every store implementation shares."""

    def test_put_get_delete(self, make_store, sample_record):
        """Test a record round-trips and delete removes it."""
        async def run():
            async with make_store() as store:
                await store.save_record(sample_record)
                stored = await store.get(RECORDS, "2024-07-20")
                await store.delete_record("2024-07-20")
                after = await store.get(RECORDS, "2024-07-20")
                return stored, after

        stored, after = asyncio.run(run())
        assert stored == sample_record.to_document()
        assert after is None

    def test_put_replaces(self, make_store):
        """Test last write wins for the same key."""
        async def run():
            async with make_store() as store:
                await store.save_record(make_record("2024-01-01", total_sales=1))
                await store.save_record(make_record("2024-01-01", total_sales=2))
                return await store.get_all_records()

        records = asyncio.run(run())
        assert len(records) == 1
        assert records[0]["totalSales"] == 2

    def test_delete_absent_key(self, make_store):
        """Test deleting a missing key is not an error."""
        async def run():
            async with make_store() as store:
                await store.delete_record("1999-01-01")

        asyncio.run(run())

    def test_get_all_ordered_by_key(self, make_store):
        """Test get_all returns documents ordered by id."""
        async def run():
            async with make_store() as store:
                for day in ("2024-01-03", "2024-01-01", "2024-01-02"):
                    await store.save_record(make_record(day))
                return await store.get_all_records()

        records = asyncio.run(run())
        assert [r["id"] for r in records] == ["2024-01-01", "2024-01-02", "2024-01-03"]

    def test_collections_are_independent(self, make_store, sample_structure):
        """Test the structure singleton and settings live apart from records."""
        async def run():
            async with make_store() as store:
                await store.save_custom_structure(sample_structure)
                await store.save_setting("trackedItems", ["Milk"])
                await store.clear_records()
                return (
                    await store.get_custom_structure(),
                    await store.get_setting("trackedItems"),
                    await store.get_setting("missing"),
                )

        structure, tracked, missing = asyncio.run(run())
        assert structure["Labours"] == [{"name": "Cook", "defaultValue": 600.0}]
        assert tracked == ["Milk"]
        assert missing is None

    def test_bulk_put_all_or_nothing(self, make_store):
        """Test a malformed document in the middle rejects the whole batch."""
        docs = [make_record(f"2024-01-0{i}").to_document() for i in range(1, 5)]
        docs.insert(2, {"date": "2024-01-09"})

        async def run():
            async with make_store() as store:
                with pytest.raises(BatchWriteError):
                    await store.bulk_put(RECORDS, docs)
                return await store.get_all_records()

        assert asyncio.run(run()) == []

    def test_bulk_put_records(self, make_store):
        """Test bulk insert of models."""
        records = [make_record("2024-02-01"), make_record("2024-02-02")]

        async def run():
            async with make_store() as store:
                await store.bulk_put_records(records)
                return await store.get_all_records()

        assert len(asyncio.run(run())) == 2

    def test_put_rejects_document_without_id(self, make_store):
        """Test a document must carry its own string id."""
        async def run():
            async with make_store() as store:
                await store.put(SETTINGS, {"value": 1})

        with pytest.raises(InvalidDocumentError):
            asyncio.run(run())

    def test_unknown_collection(self, make_store):
        """Test unknown collections are rejected."""
        async def run():
            async with make_store() as store:
                await store.get_all("amortizedExpenses")

        with pytest.raises(StorageError):
            asyncio.run(run())

    def test_returned_documents_are_copies(self, make_store, sample_record):
        """Test mutating a returned document does not change the store."""
        async def run():
            async with make_store() as store:
                await store.save_record(sample_record)
                doc = await store.get(RECORDS, sample_record.id)
                doc["totalSales"] = -1
                return await store.get(RECORDS, sample_record.id)

        assert asyncio.run(run())["totalSales"] == 1000


class TestSQLiteStore:
    """SQLite-specific behaviour: persistence, upgrades, transactions."""

    def test_survives_reopen(self, db_path, sample_record):
        """Test data persists across store instances."""
        async def write():
            async with SQLiteLedgerStore(db_path=db_path, timeout_seconds=1.0) as store:
                await store.save_record(sample_record)

        async def read():
            async with SQLiteLedgerStore(db_path=db_path, timeout_seconds=1.0) as store:
                return await store.get_all_records()

        asyncio.run(write())
        assert asyncio.run(read()) == [sample_record.to_document()]

    def test_fresh_store_created(self, db_path):
        """Test a new file gets every collection and the current version."""
        async def run():
            store = SQLiteLedgerStore(db_path=db_path, timeout_seconds=1.0)
            await store.open()
            upgrade = store.upgrade
            await store.close()
            return upgrade

        upgrade = asyncio.run(run())
        assert upgrade.from_version == 0
        assert sorted(upgrade.created) == sorted([RECORDS, CUSTOM_STRUCTURE, SETTINGS])
        assert _user_version(db_path) == STORE_VERSION

    def test_superseded_collection_dropped(self, db_path):
        """Test upgrading from version 1 drops amortizedExpenses and keeps records."""
        conn = sqlite3.connect(db_path)
        conn.execute('CREATE TABLE "records" (id TEXT PRIMARY KEY, doc TEXT NOT NULL)')
        conn.execute('CREATE TABLE "amortizedExpenses" (id TEXT PRIMARY KEY, doc TEXT NOT NULL)')
        conn.execute(
            'INSERT INTO "records" VALUES (?, ?)',
            ("2023-12-31", '{"id": "2023-12-31", "date": "2023-12-31", "totalSales": 5, "expenses": []}'),
        )
        conn.execute("PRAGMA user_version = 1")
        conn.commit()
        conn.close()

        async def run():
            async with SQLiteLedgerStore(db_path=db_path, timeout_seconds=1.0) as store:
                return store.upgrade, await store.get_all_records()

        upgrade, records = asyncio.run(run())

        assert upgrade.dropped == ["amortizedExpenses"]
        assert upgrade.from_version == 1
        assert records[0]["id"] == "2023-12-31"
        assert "amortizedExpenses" not in _tables(db_path)
        assert _user_version(db_path) == STORE_VERSION

    def test_superseded_collection_not_recreated(self, db_path):
        """Test reopening an upgraded store changes nothing."""
        async def run():
            for _ in range(2):
                async with SQLiteLedgerStore(db_path=db_path, timeout_seconds=1.0) as store:
                    upgrade = store.upgrade
            return upgrade

        assert asyncio.run(run()) is None
        assert "amortizedExpenses" not in _tables(db_path)

    def test_newer_version_rejected(self, db_path):
        """Test a file written by a newer schema is not opened."""
        conn = sqlite3.connect(db_path)
        conn.execute("PRAGMA user_version = 99")
        conn.commit()
        conn.close()

        async def run():
            store = SQLiteLedgerStore(db_path=db_path, timeout_seconds=1.0)
            try:
                await store.open()
            finally:
                await store.close()

        with pytest.raises(SchemaVersionError):
            asyncio.run(run())

    def test_failed_pragma_closes_connection(self, db_path, monkeypatch):
        """Test a connection whose setup pragmas fail is closed, not leaked."""
        conn = _PragmaFailingConnection()
        monkeypatch.setattr(sqlite3, "connect", lambda *args, **kwargs: conn)

        async def run():
            store = SQLiteLedgerStore(db_path=db_path, timeout_seconds=1.0)
            try:
                await store.open()
            finally:
                await store.close()

        with pytest.raises(StorageError):
            asyncio.run(run())
        assert conn.closed is True

    def test_concurrent_open_shares_connection(self, db_path):
        """Test concurrent open() calls create the schema once."""
        async def run():
            store = SQLiteLedgerStore(db_path=db_path, timeout_seconds=1.0)
            await asyncio.gather(store.open(), store.open(), store.get_all_records())
            conn = store._conn
            await store.open()
            same = store._conn is conn
            await store.close()
            return same

        assert asyncio.run(run()) is True

    def test_operations_open_lazily(self, db_path, sample_record):
        """Test the first operation opens the store."""
        async def run():
            store = SQLiteLedgerStore(db_path=db_path, timeout_seconds=1.0)
            await store.save_record(sample_record)
            is_open = store.is_open
            await store.close()
            return is_open, store.is_open

        assert asyncio.run(run()) == (True, False)

    def test_replace_all(self, db_path):
        """Test records and structure are swapped in one step."""
        structure = {"Gas": [ExpenseStructureItem(name="Refill", default_value=900)]}

        async def run():
            async with SQLiteLedgerStore(db_path=db_path, timeout_seconds=1.0) as store:
                await store.save_record(make_record("2024-05-01"))
                await store.replace_all([make_record("2023-01-01")], structure)
                return await store.get_all_records(), await store.get_custom_structure()

        records, stored_structure = asyncio.run(run())
        assert [r["id"] for r in records] == ["2023-01-01"]
        assert stored_structure == {"Gas": [{"name": "Refill", "defaultValue": 900.0}]}

    def test_replace_all_failure_keeps_old_data(self, db_path):
        """Test a malformed incoming record leaves the old records in place."""
        async def run():
            async with SQLiteLedgerStore(db_path=db_path, timeout_seconds=1.0) as store:
                await store.save_record(make_record("2024-05-01"))
                with pytest.raises(StorageError):
                    await store.replace_all([{"date": "2023-01-01"}], {})
                return await store.get_all_records()

        assert [r["id"] for r in asyncio.run(run())] == ["2024-05-01"]

    def test_supports_atomic_replace(self):
        """Test only SQLite advertises a native multi-collection transaction."""
        assert SQLiteLedgerStore.supports_atomic_replace is True
        assert InMemoryLedgerStore.supports_atomic_replace is False


class TestInMemoryStore:
    """In-memory specifics."""

    def test_replace_all_not_supported(self):
        """Test the base replace_all raises."""
        async def run():
            await InMemoryLedgerStore().replace_all([], {})

        with pytest.raises(NotImplementedError):
            asyncio.run(run())
