"""
Schema Migrator

Upgrades documents written by any earlier app version into the current
models, and reports whether anything changed so the caller can decide
whether to write the result back.

GUARANTEES:
- Never rejects data; it only fills in and normalizes.
- Idempotent: migrating already-migrated data reports no update.
- Each backfill is independent (a record missing only isClosed keeps
  its morningSales untouched).

The input must already be trusted: read from our own store, or
passed through the validator first.
"""

import copy
from typing import Any, Iterable, Mapping, Optional, Union

from pydantic import BaseModel, Field

from daybook.migrations.shapes import (
    ConflictingPhotos,
    CurrentPhotoList,
    LegacyStringList,
    classify_item_photos,
    classify_structure_entry,
)
from daybook.models.record import (
    BackupData,
    CustomExpenseStructure,
    DailyRecord,
    GasConfig,
    GasLog,
    GasLogType,
)
from daybook.validation.validator import LEGACY_PHOTO_FIELD, PHOTO_LIST_FIELD


class StructureMigration(BaseModel):
    """Result of migrating a custom expense structure."""

    structure: CustomExpenseStructure
    needs_update: bool = False


class RecordMigration(BaseModel):
    """Result of migrating a batch of records."""

    records: list[DailyRecord] = Field(default_factory=list)
    needs_update: bool = False
    # Items that carried both photo fields; photos list kept, legacy dropped
    flagged_item_ids: list[str] = Field(default_factory=list)


class GasLogMigration(BaseModel):
    """Result of migrating gas logs."""

    logs: list[GasLog] = Field(default_factory=list)
    needs_update: bool = False


class BackupMigration(BaseModel):
    """A backup document upgraded to current models."""

    backup: BackupData
    needs_update: bool = False
    flagged_item_ids: list[str] = Field(default_factory=list)


# =============================================================================
# STRUCTURE
# =============================================================================

def migrate_structure(raw: Optional[Mapping[str, Any]]) -> StructureMigration:
    """
    Rewrite legacy string-list categories as {name, defaultValue: 0}.

    Already-current or empty structures pass through unchanged.
    Category and item order are preserved.
    """
    if not raw:
        return StructureMigration(structure={}, needs_update=False)

    structure: CustomExpenseStructure = {}
    needs_update = False
    for category, value in raw.items():
        entry = classify_structure_entry(list(value or []))
        if isinstance(entry, LegacyStringList):
            needs_update = True
        structure[category] = entry.resolve()

    return StructureMigration(structure=structure, needs_update=needs_update)


# =============================================================================
# RECORDS
# =============================================================================

# Fields added after the first release, with the value old records get
RECORD_DEFAULTS = {
    "totalSales": 0,
    "morningSales": 0,
    "isClosed": False,
}


def _migrate_item(item: dict, flagged: list[str]) -> bool:
    shape = classify_item_photos(item)
    changed = False

    if not isinstance(shape, CurrentPhotoList):
        item[PHOTO_LIST_FIELD] = shape.resolve()
        item.pop(LEGACY_PHOTO_FIELD, None)
        changed = True
        if isinstance(shape, ConflictingPhotos):
            flagged.append(str(item.get("id", "")))
    elif item.get(PHOTO_LIST_FIELD) is None:
        # Absent and empty are the same shape; not a change.
        item[PHOTO_LIST_FIELD] = []
    elif LEGACY_PHOTO_FIELD in item:
        # billPhoto present but not a string (e.g. null)
        item.pop(LEGACY_PHOTO_FIELD)
        changed = True

    return changed


def _migrate_record_document(doc: dict, flagged: list[str]) -> bool:
    changed = False

    # A null field is treated the same as a missing one
    for field, default in RECORD_DEFAULTS.items():
        if doc.get(field) is None:
            doc[field] = default
            changed = True

    if not isinstance(doc.get("expenses"), list):
        doc["expenses"] = []
        changed = True

    for category in doc["expenses"]:
        if not isinstance(category.get("items"), list):
            category["items"] = []
            changed = True
        for item in category["items"]:
            if item.get("amount") is None:
                item["amount"] = 0
                changed = True
            if _migrate_item(item, flagged):
                changed = True

    return changed


def migrate_record(
    raw: Union[DailyRecord, Mapping[str, Any]],
) -> tuple[DailyRecord, bool, list[str]]:
    """
    Migrate one record.

    Returns (record, changed, flagged_item_ids). A DailyRecord instance is
    already current and passes through unchanged.
    """
    if isinstance(raw, DailyRecord):
        return raw, False, []

    doc = copy.deepcopy(dict(raw))
    flagged: list[str] = []
    changed = _migrate_record_document(doc, flagged)
    return DailyRecord.model_validate(doc), changed, flagged


def migrate_records(
    raw_records: Iterable[Union[DailyRecord, Mapping[str, Any]]],
) -> RecordMigration:
    """
    Migrate a batch of records.

    needs_update is True when at least one record changed shape.
    """
    result = RecordMigration()
    for raw in raw_records:
        record, changed, flagged = migrate_record(raw)
        result.records.append(record)
        result.needs_update = result.needs_update or changed
        result.flagged_item_ids.extend(flagged)
    return result


# =============================================================================
# GAS LEDGER
# =============================================================================

def migrate_gas_logs(
    raw_logs: Optional[Iterable[Union[GasLog, Mapping[str, Any]]]],
) -> GasLogMigration:
    """
    Normalize legacy gas logs.

    A missing type or USAGE becomes CONNECT; a legacy cylindersSwapped
    count moves to count.
    """
    result = GasLogMigration()
    for raw in raw_logs or []:
        if isinstance(raw, GasLog):
            result.logs.append(raw)
            continue

        doc = dict(raw)
        if doc.get("type") not in (GasLogType.REFILL.value, GasLogType.CONNECT.value):
            doc["type"] = GasLogType.CONNECT.value
            result.needs_update = True
        if doc.get("count") is None:
            doc["count"] = doc.get("cylindersSwapped") or 0
            result.needs_update = True
        if "cylindersSwapped" in doc:
            doc.pop("cylindersSwapped")
            result.needs_update = True
        result.logs.append(GasLog.model_validate(doc))

    return result


# =============================================================================
# WHOLE BACKUP
# =============================================================================

def migrate_backup(raw: Mapping[str, Any]) -> BackupMigration:
    """
    Upgrade a validated backup document to current models.

    The version tag is kept as read; it describes the source file.
    """
    records = migrate_records(raw.get("records") or [])
    structure = migrate_structure(raw.get("customStructure"))

    gas_logs = None
    gas_needs_update = False
    if raw.get("gasLogs") is not None:
        gas = migrate_gas_logs(raw["gasLogs"])
        gas_logs = gas.logs
        gas_needs_update = gas.needs_update

    gas_config = None
    if raw.get("gasConfig") is not None:
        gas_config = GasConfig.model_validate(raw["gasConfig"])

    backup = BackupData(
        version=int(raw.get("version", 0)),
        records=records.records,
        custom_structure=structure.structure,
        gas_logs=gas_logs,
        gas_config=gas_config,
    )
    return BackupMigration(
        backup=backup,
        needs_update=records.needs_update or structure.needs_update or gas_needs_update,
        flagged_item_ids=records.flagged_item_ids,
    )
