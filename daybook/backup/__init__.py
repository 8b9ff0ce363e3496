"""Backup and restore package."""

from daybook.backup.codec import (
    INVALID_STRUCTURE_MESSAGE,
    LEGACY_FORMAT_WARNING,
    InvalidBackupError,
    ParsedBackup,
    backup_filename,
    parse_backup,
    serialize_backup,
)
from daybook.backup.reconciler import (
    RestoreDataLossError,
    RestoreError,
    RestoreNotConfirmedError,
    RestorePlan,
    RestoreReconciler,
    is_backup_older_than_current,
    latest_record_date,
)

__all__ = [
    # Codec
    "INVALID_STRUCTURE_MESSAGE",
    "LEGACY_FORMAT_WARNING",
    "InvalidBackupError",
    "ParsedBackup",
    "backup_filename",
    "parse_backup",
    "serialize_backup",
    # Reconciler
    "RestoreDataLossError",
    "RestoreError",
    "RestoreNotConfirmedError",
    "RestorePlan",
    "RestoreReconciler",
    "is_backup_older_than_current",
    "latest_record_date",
]
