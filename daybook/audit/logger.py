"""
Audit Logger

DESIGN DECISION: Every change to the ledger is logged.
This provides:
1. A trail of what happened to the user's data
2. Debugging capability for migrations and restores
3. A CRITICAL entry for the one path that can lose data

The audit logger:
- Is async so callers can await it in the same flow as store operations
- Never raises (a logging failure must not break a save)
- Supports correlation IDs to trace the steps of one restore
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from daybook.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """Central audit logging service, backed by structlog."""

    def __init__(self, logger_name: str = "daybook.audit"):
        self._logger = structlog.get_logger(logger_name)
        # Last events, newest last; lets callers and tests inspect the trail
        self.recent: list[AuditEvent] = []
        self._max_recent = 200

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the event was written, False if logging failed.
        """
        self.recent.append(event)
        if len(self.recent) > self._max_recent:
            del self.recent[0]

        log_dict = event.to_log_dict()
        try:
            if event.severity == AuditSeverity.CRITICAL:
                self._logger.critical("audit_event", **log_dict)
            elif event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            return False
        return True

    async def log_store_opened(self, db_path: str, version: int) -> None:
        await self.log(AuditEventBuilder.store_opened(db_path, version))

    async def log_store_upgraded(
        self,
        from_version: int,
        to_version: int,
        dropped: list[str],
        created: list[str],
    ) -> None:
        await self.log(
            AuditEventBuilder.store_upgraded(from_version, to_version, dropped, created)
        )

    async def log_record_saved(
        self,
        record_id: str,
        total_sales: float,
        total_expenses: float,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a record save."""
        await self.log(
            AuditEventBuilder.record_saved(
                record_id=record_id,
                total_sales=total_sales,
                total_expenses=total_expenses,
                correlation_id=correlation_id,
            )
        )

    async def log_record_deleted(
        self,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_deleted(record_id, correlation_id))

    async def log_records_imported(self, count: int) -> None:
        await self.log(AuditEventBuilder.records_imported(count))

    async def log_records_migrated(
        self,
        count: int,
        flagged_item_ids: list[str],
    ) -> None:
        """Log a load-time migration that rewrote stored records."""
        await self.log(AuditEventBuilder.records_migrated(count, flagged_item_ids))

    async def log_structure_updated(self, category_count: int) -> None:
        await self.log(AuditEventBuilder.structure_updated(category_count))

    async def log_setting_saved(self, key: str) -> None:
        await self.log(AuditEventBuilder.setting_saved(key))

    async def log_gas_log_saved(self, log_id: str, log_type: str, count: int) -> None:
        await self.log(AuditEventBuilder.gas_log_saved(log_id, log_type, count))

    async def log_gas_log_deleted(self, log_id: str) -> None:
        await self.log(AuditEventBuilder.gas_log_deleted(log_id))

    async def log_backup_exported(self, record_count: int, size_bytes: int) -> None:
        await self.log(AuditEventBuilder.backup_exported(record_count, size_bytes))

    async def log_backup_parsed(
        self,
        version: int,
        record_count: int,
        is_legacy_format: bool,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.backup_parsed(
                version=version,
                record_count=record_count,
                is_legacy_format=is_legacy_format,
                correlation_id=correlation_id,
            )
        )

    async def log_backup_rejected(self, reason: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.backup_rejected(reason, correlation_id))

    async def log_restore_planned(
        self,
        record_count: int,
        is_older: bool,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.restore_planned(record_count, is_older, correlation_id)
        )

    async def log_restore_applied(self, record_count: int, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.restore_applied(record_count, correlation_id))

    async def log_restore_failed(self, error_message: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.restore_failed(error_message, correlation_id))

    async def log_restore_data_loss(self, error_message: str, correlation_id: UUID) -> None:
        """Log the irrecoverable path: records cleared, replacement failed."""
        await self.log(AuditEventBuilder.restore_data_loss(error_message, correlation_id))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(
            AuditEventBuilder.system_error(
                error_type=error_type,
                error_message=error_message,
                details=details,
                correlation_id=correlation_id,
            )
        )


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., importing a backup file)
    and pass it through parse, plan and apply.
    """
    return uuid4()
