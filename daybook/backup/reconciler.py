"""
Restore Reconciler

Restoring a backup REPLACES all local records and the custom structure.
There is no merge. This module makes that safe to offer:

1. PLAN: classify the parsed backup against current data. A backup whose
   newest record is older than the newest local record is marked
   is_older so the caller can show a stronger warning. Classification
   never blocks anything.
2. APPLY: only with explicit confirmation. Stores with a native
   transaction replace everything atomically; a failure leaves the old
   data intact. Stores without one clear first and then insert; if the
   insert fails after the clear, that is reported as data loss.
"""

from typing import Iterable, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from daybook.audit import AuditLogger, create_correlation_id
from daybook.backup.codec import ParsedBackup
from daybook.models.record import BackupData, DailyRecord
from daybook.services.storage.interface import (
    GAS_CONFIG_SETTING,
    GAS_LOGS_SETTING,
    LedgerStoreInterface,
    StorageError,
)


OLDER_BACKUP_WARNING = (
    "This backup's newest record ({backup_date}) is older than your newest "
    "record ({current_date}). Restoring will discard newer entries."
)


class RestoreError(Exception):
    """Restore failed. Unless it is a RestoreDataLossError, prior data is intact."""
    pass


class RestoreDataLossError(RestoreError):
    """
    CRITICAL: local records were cleared and the replacement failed.

    The previous records are gone from the store.
    """
    pass


class RestoreNotConfirmedError(RestoreError):
    """Apply was called without explicit user confirmation."""
    pass


def _record_date(record: Union[DailyRecord, dict]) -> str:
    return record.date if isinstance(record, DailyRecord) else record["date"]


def latest_record_date(records: Iterable[Union[DailyRecord, dict]]) -> Optional[str]:
    """Max "YYYY-MM-DD" date string, or None for no records."""
    return max((_record_date(r) for r in records), default=None)


def is_backup_older_than_current(
    current_records: Iterable[Union[DailyRecord, dict]],
    backup_records: Iterable[Union[DailyRecord, dict]],
) -> bool:
    """
    True iff the backup's newest date is strictly before the local newest date.

    "YYYY-MM-DD" strings sort the same as calendar dates. If either side
    is empty there is nothing to lose, so the answer is False.
    """
    current_latest = latest_record_date(current_records)
    backup_latest = latest_record_date(backup_records)
    if current_latest is None or backup_latest is None:
        return False
    return backup_latest < current_latest


class RestorePlan(BaseModel):
    """A classified restore, waiting for user confirmation."""

    backup: BackupData
    correlation_id: UUID
    is_older: bool = False
    is_legacy_format: bool = False
    current_latest_date: Optional[str] = None
    backup_latest_date: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)

    @property
    def record_count(self) -> int:
        return len(self.backup.records)


class RestoreReconciler:
    """Plans and applies destructive restores against one store."""

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger

    async def plan(
        self,
        parsed: ParsedBackup,
        current_records: list[DailyRecord],
        correlation_id: Optional[UUID] = None,
    ) -> RestorePlan:
        """Classify a parsed backup against the current records."""
        correlation_id = correlation_id or create_correlation_id()
        backup = parsed.backup

        current_latest = latest_record_date(current_records)
        backup_latest = latest_record_date(backup.records)
        is_older = is_backup_older_than_current(current_records, backup.records)

        warnings = list(parsed.warnings)
        if is_older:
            warnings.append(
                OLDER_BACKUP_WARNING.format(
                    backup_date=backup_latest,
                    current_date=current_latest,
                )
            )

        plan = RestorePlan(
            backup=backup,
            correlation_id=correlation_id,
            is_older=is_older,
            is_legacy_format=parsed.is_legacy_format,
            current_latest_date=current_latest,
            backup_latest_date=backup_latest,
            warnings=warnings,
        )

        if self._audit_logger:
            await self._audit_logger.log_restore_planned(
                record_count=plan.record_count,
                is_older=is_older,
                correlation_id=correlation_id,
            )
        return plan

    async def apply(self, plan: RestorePlan, confirmed: bool = False) -> int:
        """
        Replace all records and the structure with the backup's.

        Returns:
            Number of records restored

        Raises:
            RestoreNotConfirmedError: If confirmed is not True
            RestoreError: If the restore failed and prior data is intact
            RestoreDataLossError: If records were cleared and not replaced
        """
        if confirmed is not True:
            raise RestoreNotConfirmedError("Restore must be explicitly confirmed")

        backup = plan.backup
        if self._store.supports_atomic_replace:
            await self._apply_atomic(plan)
        else:
            await self._apply_sequential(plan)

        # Gas data is optional and only replaced when the backup carries it
        try:
            if backup.gas_logs is not None:
                await self._store.save_setting(
                    GAS_LOGS_SETTING,
                    [log.to_document() for log in backup.gas_logs],
                )
            if backup.gas_config is not None:
                await self._store.save_setting(
                    GAS_CONFIG_SETTING,
                    backup.gas_config.to_document(),
                )
        except StorageError as e:
            await self._log_failed(f"Records restored but gas data was not: {e}", plan)
            raise RestoreError(f"Records restored but gas data was not: {e}") from e

        if self._audit_logger:
            await self._audit_logger.log_restore_applied(
                record_count=plan.record_count,
                correlation_id=plan.correlation_id,
            )
        return plan.record_count

    async def _apply_atomic(self, plan: RestorePlan) -> None:
        try:
            await self._store.replace_all(plan.backup.records, plan.backup.custom_structure)
        except StorageError as e:
            await self._log_failed(str(e), plan)
            raise RestoreError(f"Restore failed; your existing data was kept: {e}") from e

    async def _apply_sequential(self, plan: RestorePlan) -> None:
        backup = plan.backup
        try:
            await self._store.clear_records()
        except StorageError as e:
            await self._log_failed(str(e), plan)
            raise RestoreError(f"Restore failed; your existing data was kept: {e}") from e

        try:
            await self._store.bulk_put_records(backup.records)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_restore_data_loss(str(e), plan.correlation_id)
            raise RestoreDataLossError(
                "Restore failed after existing records were cleared. "
                f"Local records are lost; restore again from a backup file: {e}"
            ) from e

        try:
            await self._store.save_custom_structure(backup.custom_structure)
        except StorageError as e:
            await self._log_failed(str(e), plan)
            raise RestoreError(
                f"Records restored but the expense structure was not: {e}"
            ) from e

    async def _log_failed(self, message: str, plan: RestorePlan) -> None:
        if self._audit_logger:
            await self._audit_logger.log_restore_failed(message, plan.correlation_id)
