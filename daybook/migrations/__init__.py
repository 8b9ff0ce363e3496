"""Schema migration package."""

from daybook.migrations.migrator import (
    BackupMigration,
    GasLogMigration,
    RecordMigration,
    StructureMigration,
    migrate_backup,
    migrate_gas_logs,
    migrate_record,
    migrate_records,
    migrate_structure,
)
from daybook.migrations.shapes import (
    ConflictingPhotos,
    CurrentPhotoList,
    CurrentStructuredList,
    LegacySinglePhoto,
    LegacyStringList,
    classify_item_photos,
    classify_structure_entry,
)

__all__ = [
    # Migrator
    "BackupMigration",
    "GasLogMigration",
    "RecordMigration",
    "StructureMigration",
    "migrate_backup",
    "migrate_gas_logs",
    "migrate_record",
    "migrate_records",
    "migrate_structure",
    # Tagged shapes
    "ConflictingPhotos",
    "CurrentPhotoList",
    "CurrentStructuredList",
    "LegacySinglePhoto",
    "LegacyStringList",
    "classify_item_photos",
    "classify_structure_entry",
]
