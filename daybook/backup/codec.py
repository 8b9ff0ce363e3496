"""
Backup Codec

Converts the full application state to a single portable JSON document
and back.

Accepted on import, in order:
1. The current backup document (any version tag) -> validated, migrated
2. A bare array of records (the oldest export) -> version 0, empty
   structure, flagged so the user is told custom categories are lost
3. Anything else -> InvalidBackupError, before anything is migrated

Exports are always the current version.
"""

import json
from datetime import date
from typing import Iterable, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from daybook.migrations.migrator import migrate_backup
from daybook.models.record import (
    CURRENT_BACKUP_VERSION,
    LEGACY_RECORDS_ONLY_VERSION,
    BackupData,
    CustomExpenseStructure,
    DailyRecord,
    GasConfig,
    GasLog,
)
from daybook.validation.validator import is_backup_data, is_daily_record_list


INVALID_STRUCTURE_MESSAGE = "Invalid file structure. Please upload a valid backup file."
LEGACY_FORMAT_WARNING = (
    "Legacy backup file detected. Your custom expense structure will not be restored."
)
FLAGGED_PHOTOS_WARNING = (
    "Some expense items had both an old and a new photo field; "
    "the photo list was kept. Please review: {item_ids}"
)


class InvalidBackupError(Exception):
    """The backup text is not JSON or does not match any accepted shape."""
    pass


class ParsedBackup(BaseModel):
    """A backup that passed validation and was upgraded to current models."""

    backup: BackupData
    is_legacy_format: bool = False
    # True when migration changed anything (the file came from an older app)
    was_migrated: bool = False
    flagged_item_ids: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


def serialize_backup(
    records: Iterable[DailyRecord],
    structure: CustomExpenseStructure,
    gas_logs: Optional[list[GasLog]] = None,
    gas_config: Optional[GasConfig] = None,
) -> str:
    """
    Serialize the full state as a pretty-printed backup document.

    Key order follows the model field order, so the same state always
    produces the same text.
    """
    backup = BackupData(
        version=CURRENT_BACKUP_VERSION,
        records=list(records),
        custom_structure=structure,
        gas_logs=gas_logs or None,
        gas_config=gas_config,
    )
    return json.dumps(backup.to_document(), indent=2, ensure_ascii=False)


def parse_backup(text: Union[str, bytes]) -> ParsedBackup:
    """
    Parse, validate and migrate backup text.

    Raises:
        InvalidBackupError: If the text is not JSON, not a known shape, or
            holds values the models reject
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise InvalidBackupError(f"Backup file is not UTF-8 text: {e}")

    try:
        data = json.loads(text)
    except ValueError as e:
        raise InvalidBackupError(f"Backup file is not valid JSON: {e}")

    warnings = []
    is_legacy = False
    if is_backup_data(data):
        raw = data
    elif is_daily_record_list(data):
        is_legacy = True
        warnings.append(LEGACY_FORMAT_WARNING)
        raw = {
            "version": LEGACY_RECORDS_ONLY_VERSION,
            "records": data,
            "customStructure": {},
        }
    else:
        raise InvalidBackupError(INVALID_STRUCTURE_MESSAGE)

    try:
        migration = migrate_backup(raw)
    except ValidationError as e:
        raise InvalidBackupError(INVALID_STRUCTURE_MESSAGE) from e
    if migration.flagged_item_ids:
        warnings.append(
            FLAGGED_PHOTOS_WARNING.format(item_ids=", ".join(migration.flagged_item_ids))
        )

    return ParsedBackup(
        backup=migration.backup,
        is_legacy_format=is_legacy,
        was_migrated=migration.needs_update,
        flagged_item_ids=migration.flagged_item_ids,
        warnings=warnings,
    )


def backup_filename(prefix: str, on: Optional[date] = None) -> str:
    """e.g. daybook-backup-2024-07-20.json"""
    on = on or date.today()
    return f"{prefix}-{on.isoformat()}.json"
