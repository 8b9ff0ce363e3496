"""
Ledger Service

The single consumer-facing object. It owns the store handle and an
in-memory read-through cache of records, structure and gas data.

DESIGN DECISION: The store is constructed once and passed in; there is
no module-level connection. The cache is only a copy of what the store
holds and is discarded and re-read after a restore.

Flows:
1. load(): open the store, migrate anything stored in an older shape,
   re-persist it, and fill the cache
2. save/delete: write through to the store, then update the cache
3. restore: parse -> plan (staleness check) -> confirmed apply -> reload
"""

from datetime import date, datetime
from typing import Any, Iterable, Optional, Union
from uuid import UUID

import structlog

from daybook.audit import AuditLogger, create_correlation_id
from daybook.backup import (
    InvalidBackupError,
    RestoreError,
    RestoreNotConfirmedError,
    RestorePlan,
    RestoreReconciler,
    backup_filename,
    parse_backup,
    serialize_backup,
)
from daybook.config import Settings, get_settings
from daybook.export import csv_filename, records_to_csv
from daybook.migrations import migrate_gas_logs, migrate_records, migrate_structure
from daybook.models import (
    CustomExpenseStructure,
    DailyRecord,
    ExpenseStructureItem,
    GasConfig,
    GasLog,
    GasStock,
    compute_gas_stock,
    default_expense_structure,
    generate_new_record_expenses,
)
from daybook.queries import (
    ALL_YEARS,
    LedgerSummary,
    filter_records,
    reportable_records,
    summarize,
)
from daybook.services.storage import (
    ACTIVE_YEAR_SETTING,
    BILL_UPLOAD_CATEGORIES_SETTING,
    FOOD_COST_CATEGORIES_SETTING,
    GAS_CONFIG_SETTING,
    GAS_LOGS_SETTING,
    TRACKED_ITEMS_SETTING,
    LedgerStoreInterface,
    SQLiteLedgerStore,
    StorageError,
)

logger = structlog.get_logger(__name__)


class LedgerService:
    """
    Records, structure, settings and gas ledger over one store.

    Call load() once before anything else.
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[Settings] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings()
        self._reconciler = RestoreReconciler(store, self._audit_logger)

        self._records: dict[str, DailyRecord] = {}
        self._structure: CustomExpenseStructure = {}
        self._gas_logs: list[GasLog] = []
        self._gas_config: Optional[GasConfig] = None
        self._loaded = False

    @property
    def store(self) -> LedgerStoreInterface:
        return self._store

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load(self) -> None:
        """
        Open the store and fill the cache.

        Records and gas logs stored in an older shape are migrated and
        written back so the next load finds nothing to do.
        """
        await self._store.open()

        upgrade = getattr(self._store, "upgrade", None)
        if upgrade is not None:
            await self._audit_logger.log_store_upgraded(
                from_version=upgrade.from_version,
                to_version=upgrade.to_version,
                dropped=upgrade.dropped,
                created=upgrade.created,
            )
        await self._audit_logger.log_store_opened(
            db_path=getattr(self._store, "db_path", ":memory:"),
            version=getattr(self._store, "version", 0),
        )

        migration = migrate_records(await self._store.get_all_records())
        if migration.needs_update:
            await self._store.bulk_put_records(migration.records)
            await self._audit_logger.log_records_migrated(
                count=len(migration.records),
                flagged_item_ids=migration.flagged_item_ids,
            )
            logger.info("records_migrated", count=len(migration.records))
        self._records = {record.id: record for record in migration.records}

        stored_structure = await self._store.get_custom_structure()
        if stored_structure is None:
            self._structure = default_expense_structure()
        else:
            self._structure = migrate_structure(stored_structure).structure

        gas = migrate_gas_logs(await self._store.get_setting(GAS_LOGS_SETTING))
        self._gas_logs = _newest_first(gas.logs)
        if gas.needs_update:
            await self._save_gas_logs()

        stored_config = await self._store.get_setting(GAS_CONFIG_SETTING)
        self._gas_config = GasConfig.model_validate(stored_config) if stored_config else None

        self._loaded = True

    async def reload(self) -> None:
        """Discard the cache and re-read everything from the store."""
        self._loaded = False
        await self.load()

    async def close(self) -> None:
        await self._store.close()

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    def get_all_records(self) -> list[DailyRecord]:
        """All records, newest first."""
        return sorted(self._records.values(), key=lambda r: r.date, reverse=True)

    def get_record(self, record_id: str) -> Optional[DailyRecord]:
        return self._records.get(record_id)

    def new_record(self, record_date: str) -> DailyRecord:
        """An unsaved record for a date, with expenses from the current template."""
        return DailyRecord.for_date(
            record_date,
            expenses=generate_new_record_expenses(self._structure),
        )

    async def save_record(
        self,
        record: DailyRecord,
        original_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> DailyRecord:
        """
        Save a whole record, replacing any record for the same date.

        When an edit moved the record to another date, pass the old id as
        original_id so the old date's record is removed.

        Raises:
            ValueError: If record.id is not its date
            StorageError: If the write fails
        """
        if record.id != record.date:
            raise ValueError(
                f"Record id must equal its date, got id={record.id!r} date={record.date!r}"
            )

        if original_id and original_id != record.id:
            await self._store.delete_record(original_id)
            self._records.pop(original_id, None)
            await self._audit_logger.log_record_deleted(original_id, correlation_id)

        await self._store.save_record(record)
        self._records[record.id] = record

        await self._audit_logger.log_record_saved(
            record_id=record.id,
            total_sales=record.total_sales,
            total_expenses=record.total_expenses,
            correlation_id=correlation_id,
        )
        return record

    async def delete_record(self, record_id: str) -> None:
        await self._store.delete_record(record_id)
        self._records.pop(record_id, None)
        await self._audit_logger.log_record_deleted(record_id)

    async def import_records(
        self,
        records: Iterable[Union[DailyRecord, dict]],
    ) -> int:
        """
        Add or replace many records in one batch.

        Raw documents are migrated first. Returns the number imported.

        Raises:
            BatchWriteError: If the batch was rejected (nothing was written)
        """
        migration = migrate_records(records)
        await self._store.bulk_put_records(migration.records)
        for record in migration.records:
            self._records[record.id] = record
        await self._audit_logger.log_records_imported(len(migration.records))
        return len(migration.records)

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    async def get_setting(self, key: str, default: Any = None) -> Any:
        value = await self._store.get_setting(key)
        return default if value is None else value

    async def set_setting(self, key: str, value: Any) -> None:
        await self._store.save_setting(key, value)
        await self._audit_logger.log_setting_saved(key)

    async def get_food_cost_categories(self) -> list[str]:
        return await self.get_setting(
            FOOD_COST_CATEGORIES_SETTING,
            self._settings.ledger.food_cost_categories_list,
        )

    async def set_food_cost_categories(self, categories: list[str]) -> None:
        await self.set_setting(FOOD_COST_CATEGORIES_SETTING, list(categories))

    async def get_bill_upload_categories(self) -> list[str]:
        return await self.get_setting(
            BILL_UPLOAD_CATEGORIES_SETTING,
            self._settings.ledger.bill_upload_categories_list,
        )

    async def set_bill_upload_categories(self, categories: list[str]) -> None:
        await self.set_setting(BILL_UPLOAD_CATEGORIES_SETTING, list(categories))

    async def get_tracked_items(self) -> list[str]:
        return await self.get_setting(TRACKED_ITEMS_SETTING, [])

    async def set_tracked_items(self, items: list[str]) -> None:
        await self.set_setting(TRACKED_ITEMS_SETTING, list(items))

    async def get_active_year(self) -> str:
        """A "YYYY" year string, or "all"."""
        return await self.get_setting(ACTIVE_YEAR_SETTING, ALL_YEARS)

    async def set_active_year(self, year: str) -> None:
        await self.set_setting(ACTIVE_YEAR_SETTING, year)

    # -------------------------------------------------------------------------
    # Custom structure
    # -------------------------------------------------------------------------

    def get_custom_structure(self) -> CustomExpenseStructure:
        return {name: list(items) for name, items in self._structure.items()}

    async def update_structure(self, structure: CustomExpenseStructure) -> None:
        await self._store.save_custom_structure(structure)
        self._structure = {name: list(items) for name, items in structure.items()}
        await self._audit_logger.log_structure_updated(len(structure))

    async def save_custom_item(
        self,
        category_name: str,
        item_name: str,
        default_value: float = 0.0,
    ) -> bool:
        """
        Add an item to the template, creating the category if needed.

        Returns False (and writes nothing) if the category already has an
        item with that name.
        """
        structure = self.get_custom_structure()
        items = structure.setdefault(category_name, [])
        if any(item.name == item_name for item in items):
            return False
        items.append(ExpenseStructureItem(name=item_name, default_value=default_value))
        await self.update_structure(structure)
        return True

    # -------------------------------------------------------------------------
    # Gas cylinders
    # -------------------------------------------------------------------------

    def get_gas_logs(self) -> list[GasLog]:
        """Gas events, newest first."""
        return list(self._gas_logs)

    def get_gas_config(self) -> GasConfig:
        if self._gas_config is not None:
            return self._gas_config
        ledger = self._settings.ledger
        return GasConfig(
            total_cylinders=ledger.gas_total_cylinders,
            cylinders_per_bank=ledger.gas_cylinders_per_bank,
        )

    async def set_gas_config(self, config: GasConfig) -> None:
        await self._store.save_setting(GAS_CONFIG_SETTING, config.to_document())
        self._gas_config = config
        await self._audit_logger.log_setting_saved(GAS_CONFIG_SETTING)

    async def save_gas_log(self, log: GasLog) -> None:
        """Add a gas event, or replace the one with the same id."""
        logs = [existing for existing in self._gas_logs if existing.id != log.id]
        logs.append(log)
        previous, self._gas_logs = self._gas_logs, _newest_first(logs)
        try:
            await self._save_gas_logs()
        except Exception:
            self._gas_logs = previous
            raise
        await self._audit_logger.log_gas_log_saved(log.id, log.type.value, log.count)

    async def delete_gas_log(self, log_id: str) -> None:
        previous = self._gas_logs
        self._gas_logs = [log for log in previous if log.id != log_id]
        try:
            await self._save_gas_logs()
        except Exception:
            self._gas_logs = previous
            raise
        await self._audit_logger.log_gas_log_deleted(log_id)

    def gas_stock(self, now: Optional[datetime] = None) -> GasStock:
        return compute_gas_stock(self._gas_logs, self.get_gas_config(), now)

    async def _save_gas_logs(self) -> None:
        await self._store.save_setting(
            GAS_LOGS_SETTING,
            [log.to_document() for log in self._gas_logs],
        )

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    async def export_backup(self) -> str:
        """The full state as backup JSON text."""
        text = serialize_backup(
            self.get_all_records(),
            self._structure,
            gas_logs=self._gas_logs,
            gas_config=self._gas_config,
        )
        await self._audit_logger.log_backup_exported(
            record_count=len(self._records),
            size_bytes=len(text.encode("utf-8")),
        )
        return text

    def export_csv(self, records: Optional[Iterable[DailyRecord]] = None) -> str:
        """CSV text for the given records, or for all records."""
        return records_to_csv(self._records.values() if records is None else records)

    def backup_filename(self, on: Optional[date] = None) -> str:
        return backup_filename(self._settings.ledger.backup_filename_prefix, on)

    def csv_filename(self, on: Optional[date] = None) -> str:
        return csv_filename(self._settings.ledger.csv_filename_prefix, on)

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    async def summarize(
        self,
        start: Optional[str] = None,
        end: Optional[str] = None,
        year: Optional[str] = None,
    ) -> LedgerSummary:
        """
        Report figures for open, non-empty days in a date range.

        Food cost uses the stored food-cost categories; labor uses the
        configured labor category name.
        """
        records = filter_records(reportable_records(self._records.values()), start, end, year)
        return summarize(
            records,
            food_cost_categories=await self.get_food_cost_categories(),
            labor_category=self._settings.ledger.labor_category_name,
        )

    # -------------------------------------------------------------------------
    # Restore
    # -------------------------------------------------------------------------

    async def prepare_restore(self, text: Union[str, bytes]) -> RestorePlan:
        """
        Parse a backup and classify it against the current records.

        Nothing is written. A rejected file never reaches the store.

        Raises:
            InvalidBackupError: If the file is not a valid backup
        """
        correlation_id = create_correlation_id()
        try:
            parsed = parse_backup(text)
        except InvalidBackupError as e:
            await self._audit_logger.log_backup_rejected(str(e), correlation_id)
            raise

        await self._audit_logger.log_backup_parsed(
            version=parsed.backup.version,
            record_count=len(parsed.backup.records),
            is_legacy_format=parsed.is_legacy_format,
            correlation_id=correlation_id,
        )
        return await self._reconciler.plan(
            parsed,
            list(self._records.values()),
            correlation_id=correlation_id,
        )

    async def apply_restore(self, plan: RestorePlan, confirmed: bool = False) -> int:
        """
        Apply a confirmed restore, then re-read everything from the store.

        Returns the number of records restored. The cache is re-read even
        when the restore fails, so it never shows data the store lost.

        Raises:
            RestoreNotConfirmedError: If confirmed is not True
            RestoreError: If the restore failed with prior data intact
            RestoreDataLossError: If records were cleared and not replaced
        """
        try:
            count = await self._reconciler.apply(plan, confirmed=confirmed)
        except RestoreNotConfirmedError:
            raise
        except RestoreError:
            await self._reload_after_failed_restore(plan.correlation_id)
            raise
        await self.reload()
        return count

    async def _reload_after_failed_restore(self, correlation_id: UUID) -> None:
        try:
            await self.reload()
        except StorageError as e:
            # The restore error is what the caller needs to see
            await self._audit_logger.log_error(
                error_type="reload_failed",
                error_message=str(e),
                correlation_id=correlation_id,
            )


def _newest_first(logs: list[GasLog]) -> list[GasLog]:
    return sorted(logs, key=lambda log: log.date, reverse=True)


def create_ledger(
    settings: Optional[Settings] = None,
    store: Optional[LedgerStoreInterface] = None,
) -> LedgerService:
    """
    Factory function to create the ledger and its collaborators.

    Args:
        settings: Settings to use. Defaults to get_settings().
        store: Store to use. Defaults to the SQLite store at the
            configured path; pass InMemoryLedgerStore() for tests.

    Returns:
        An unloaded LedgerService; await load() before use
    """
    settings = settings or get_settings()
    if store is None:
        store = SQLiteLedgerStore(
            db_path=settings.store.db_path,
            timeout_seconds=settings.store.timeout_seconds,
        )
    return LedgerService(
        store=store,
        audit_logger=AuditLogger(),
        settings=settings,
    )
