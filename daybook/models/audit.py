"""
Audit Models for Daybook

Every change to the store, and every backup/restore decision, is logged.
This provides:
1. A trail of what the user did to their data
2. Debugging information when a restore or migration goes wrong
3. A distinct, searchable record of the one data-loss path

DESIGN DECISION: Audit events go to the structured log only.
They are never written into the ledger store itself.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Store lifecycle
    STORE_OPENED = "store_opened"
    STORE_UPGRADED = "store_upgraded"

    # Records
    RECORD_SAVED = "record_saved"
    RECORD_DELETED = "record_deleted"
    RECORDS_IMPORTED = "records_imported"
    RECORDS_MIGRATED = "records_migrated"

    # Structure and settings
    STRUCTURE_UPDATED = "structure_updated"
    SETTING_SAVED = "setting_saved"

    # Gas ledger
    GAS_LOG_SAVED = "gas_log_saved"
    GAS_LOG_DELETED = "gas_log_deleted"

    # Backup and restore
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_PARSED = "backup_parsed"
    BACKUP_REJECTED = "backup_rejected"
    RESTORE_PLANNED = "restore_planned"
    RESTORE_APPLIED = "restore_applied"
    RESTORE_FAILED = "restore_failed"
    RESTORE_DATA_LOSS = "restore_data_loss"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """
    A single audit event.

    Entity ids are strings: records are keyed by date,
    settings by name.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'record', 'setting', 'backup')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., parse + plan + apply of one restore)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_saved("2024-07-20")
        event = AuditEventBuilder.restore_applied(42, correlation_id)
    """

    @staticmethod
    def store_opened(db_path: str, version: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_OPENED,
            entity_type="store",
            entity_id=db_path,
            description=f"Store opened at schema version {version}",
            details={"version": version},
        )

    @staticmethod
    def store_upgraded(
        from_version: int,
        to_version: int,
        dropped: list[str],
        created: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_UPGRADED,
            entity_type="store",
            description=f"Store upgraded from version {from_version} to {to_version}",
            details={
                "from_version": from_version,
                "to_version": to_version,
                "dropped_collections": dropped,
                "created_collections": created,
            },
        )

    @staticmethod
    def record_saved(
        record_id: str,
        total_sales: float,
        total_expenses: float,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_SAVED,
            entity_type="record",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Record saved for {record_id}",
            details={
                "total_sales": total_sales,
                "total_expenses": total_expenses,
            },
            is_user_action=True,
        )

    @staticmethod
    def record_deleted(
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            entity_type="record",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Record deleted for {record_id}",
            is_user_action=True,
        )

    @staticmethod
    def records_imported(
        count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORDS_IMPORTED,
            entity_type="record",
            correlation_id=correlation_id,
            description=f"Imported {count} records",
            details={"count": count},
            is_user_action=True,
        )

    @staticmethod
    def records_migrated(
        count: int,
        flagged_item_ids: list[str],
    ) -> AuditEvent:
        severity = AuditSeverity.WARNING if flagged_item_ids else AuditSeverity.INFO
        return AuditEvent(
            event_type=AuditEventType.RECORDS_MIGRATED,
            severity=severity,
            entity_type="record",
            description=f"Migrated {count} records to the current shape",
            details={
                "count": count,
                "flagged_item_ids": flagged_item_ids,
            },
        )

    @staticmethod
    def structure_updated(category_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STRUCTURE_UPDATED,
            entity_type="structure",
            description=f"Expense structure saved with {category_count} categories",
            details={"category_count": category_count},
            is_user_action=True,
        )

    @staticmethod
    def setting_saved(key: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTING_SAVED,
            entity_type="setting",
            entity_id=key,
            description=f"Setting saved: {key}",
            is_user_action=True,
        )

    @staticmethod
    def gas_log_saved(log_id: str, log_type: str, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GAS_LOG_SAVED,
            entity_type="gas_log",
            entity_id=log_id,
            description=f"Gas {log_type.lower()} of {count} cylinders logged",
            details={"type": log_type, "count": count},
            is_user_action=True,
        )

    @staticmethod
    def gas_log_deleted(log_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GAS_LOG_DELETED,
            entity_type="gas_log",
            entity_id=log_id,
            description="Gas log deleted",
            is_user_action=True,
        )

    @staticmethod
    def backup_exported(
        record_count: int,
        size_bytes: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            entity_type="backup",
            description=f"Backup exported with {record_count} records",
            details={
                "record_count": record_count,
                "size_bytes": size_bytes,
            },
            is_user_action=True,
        )

    @staticmethod
    def backup_parsed(
        version: int,
        record_count: int,
        is_legacy_format: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_PARSED,
            severity=AuditSeverity.WARNING if is_legacy_format else AuditSeverity.INFO,
            entity_type="backup",
            correlation_id=correlation_id,
            description=f"Backup parsed: version {version}, {record_count} records",
            details={
                "version": version,
                "record_count": record_count,
                "is_legacy_format": is_legacy_format,
            },
        )

    @staticmethod
    def backup_rejected(
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="backup",
            correlation_id=correlation_id,
            description="Backup file rejected",
            error_message=reason,
        )

    @staticmethod
    def restore_planned(
        record_count: int,
        is_older: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESTORE_PLANNED,
            severity=AuditSeverity.WARNING if is_older else AuditSeverity.INFO,
            entity_type="backup",
            correlation_id=correlation_id,
            description=(
                "Restore planned from an OLDER backup"
                if is_older
                else "Restore planned"
            ),
            details={
                "record_count": record_count,
                "is_older": is_older,
            },
        )

    @staticmethod
    def restore_applied(
        record_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESTORE_APPLIED,
            entity_type="backup",
            correlation_id=correlation_id,
            description=f"Restore applied: {record_count} records",
            details={"record_count": record_count},
            is_user_action=True,
        )

    @staticmethod
    def restore_failed(
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESTORE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="backup",
            correlation_id=correlation_id,
            description="Restore failed; existing data was kept",
            error_message=error_message,
        )

    @staticmethod
    def restore_data_loss(
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESTORE_DATA_LOSS,
            severity=AuditSeverity.CRITICAL,
            entity_type="backup",
            correlation_id=correlation_id,
            description="Restore failed after records were cleared; local records are gone",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
