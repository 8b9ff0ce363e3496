"""
Tests for schema migration

Migration only adds and normalizes fields. Running it twice must be a
no-op the second time.
"""

from daybook.migrations import (
    ConflictingPhotos,
    CurrentPhotoList,
    CurrentStructuredList,
    LegacySinglePhoto,
    LegacyStringList,
    classify_item_photos,
    classify_structure_entry,
    migrate_backup,
    migrate_gas_logs,
    migrate_record,
    migrate_records,
    migrate_structure,
)
from daybook.models import DailyRecord, ExpenseStructureItem, GasLogType
from tests.conftest import legacy_record_document


class TestTaggedShapes:
    """Tests for legacy shape classification."""

    def test_string_list_is_legacy(self):
        """Test a list of names is the legacy template shape."""
        entry = classify_structure_entry(["Beef", "Fish"])
        assert isinstance(entry, LegacyStringList)
        assert entry.kind == "legacy_string_list"

    def test_empty_list_is_current(self):
        """Test an empty list needs no migration."""
        assert isinstance(classify_structure_entry([]), CurrentStructuredList)

    def test_structured_list_is_current(self):
        """Test {name, defaultValue} entries are current."""
        entry = classify_structure_entry([{"name": "Beef", "defaultValue": 5}])
        assert isinstance(entry, CurrentStructuredList)
        assert entry.resolve() == [ExpenseStructureItem(name="Beef", default_value=5)]

    def test_single_photo_is_legacy(self):
        """Test billPhoto alone is the legacy photo shape."""
        shape = classify_item_photos({"billPhoto": "abc"})
        assert isinstance(shape, LegacySinglePhoto)
        assert shape.resolve() == ["abc"]

    def test_empty_legacy_photo_resolves_empty(self):
        """Test an empty billPhoto string means no photo."""
        assert classify_item_photos({"billPhoto": ""}).resolve() == []

    def test_photo_list_is_current(self):
        """Test billPhotos alone (or nothing) is current."""
        assert isinstance(classify_item_photos({"billPhotos": ["a"]}), CurrentPhotoList)
        assert isinstance(classify_item_photos({}), CurrentPhotoList)

    def test_both_fields_conflict(self):
        """Test a non-empty list plus a legacy string conflicts; the list wins."""
        shape = classify_item_photos({"billPhoto": "old", "billPhotos": ["new"]})
        assert isinstance(shape, ConflictingPhotos)
        assert shape.resolve() == ["new"]

    def test_legacy_with_empty_list_is_legacy(self):
        """Test an empty list does not conflict with a legacy photo."""
        shape = classify_item_photos({"billPhoto": "old", "billPhotos": []})
        assert isinstance(shape, LegacySinglePhoto)


class TestStructureMigration:
    """Tests for migrate_structure."""

    def test_legacy_structure_upgraded_in_order(self):
        """Test every string becomes {name, defaultValue: 0}, order preserved."""
        result = migrate_structure({"Meat": ["Beef", "Chicken", "Fish"], "Gas": ["Refill"]})

        assert result.needs_update is True
        assert list(result.structure) == ["Meat", "Gas"]
        assert [i.name for i in result.structure["Meat"]] == ["Beef", "Chicken", "Fish"]
        assert all(i.default_value == 0 for i in result.structure["Meat"])

    def test_current_structure_unchanged(self):
        """Test a current structure passes through."""
        result = migrate_structure({"Meat": [{"name": "Beef", "defaultValue": 100}]})
        assert result.needs_update is False
        assert result.structure["Meat"][0].default_value == 100

    def test_empty_structure(self):
        """Test None and {} give an empty structure with no update."""
        assert migrate_structure(None).structure == {}
        assert migrate_structure({}).needs_update is False

    def test_idempotent(self):
        """Test migrating the migrated structure changes nothing."""
        first = migrate_structure({"Meat": ["Beef"]})
        doc = {k: [i.to_document() for i in v] for k, v in first.structure.items()}
        second = migrate_structure(doc)
        assert second.needs_update is False
        assert second.structure == first.structure


class TestRecordMigration:
    """Tests for migrate_record and migrate_records."""

    def test_legacy_record_backfilled(self):
        """Test missing fields are added and the photo moved to the list."""
        record, changed, flagged = migrate_record(legacy_record_document("2024-01-01", "img"))

        assert changed is True
        assert flagged == []
        assert record.morning_sales == 0
        assert record.is_closed is False
        item = record.expenses[0].items[0]
        assert item.bill_photos == ["img"]
        assert "billPhoto" not in item.to_document()

    def test_backfills_are_independent(self):
        """Test a record missing only isClosed keeps its morningSales."""
        doc = {
            "id": "2024-01-01",
            "date": "2024-01-01",
            "totalSales": 900,
            "morningSales": 300,
            "expenses": [],
        }
        record, changed, _ = migrate_record(doc)
        assert changed is True
        assert record.morning_sales == 300
        assert record.is_closed is False

    def test_null_fields_backfilled(self):
        """Test null fields get the same defaults as missing ones."""
        doc = legacy_record_document("2024-01-01")
        doc.update({"totalSales": None, "morningSales": None, "isClosed": None})
        doc["expenses"][0]["items"][0]["amount"] = None

        result = migrate_records([doc])

        record = result.records[0]
        assert result.needs_update is True
        assert record.total_sales == 0
        assert record.morning_sales == 0
        assert record.is_closed is False
        assert record.expenses[0].items[0].amount == 0

    def test_missing_expenses_normalized(self):
        """Test an absent expenses list becomes empty."""
        record, changed, _ = migrate_record(
            {"id": "2024-01-01", "date": "2024-01-01", "totalSales": 0,
             "morningSales": 0, "isClosed": True}
        )
        assert changed is True
        assert record.expenses == []
        assert record.is_closed is True

    def test_current_record_unchanged(self, sample_record):
        """Test a current document reports no change."""
        record, changed, _ = migrate_record(sample_record.to_document())
        assert changed is False
        assert record == sample_record

    def test_absent_photo_list_is_not_a_change(self):
        """Test a current item without billPhotos needs no re-save."""
        doc = {
            "id": "2024-01-01", "date": "2024-01-01", "totalSales": 0,
            "morningSales": 0, "isClosed": False,
            "expenses": [{"id": "c", "name": "Gas", "items": [
                {"id": "i", "name": "Refill", "amount": 900},
            ]}],
        }
        record, changed, _ = migrate_record(doc)
        assert changed is False
        assert record.expenses[0].items[0].bill_photos == []

    def test_model_instance_passes_through(self, sample_record):
        """Test a DailyRecord is already current."""
        record, changed, flagged = migrate_record(sample_record)
        assert record is sample_record
        assert changed is False
        assert flagged == []

    def test_input_not_mutated(self):
        """Test the raw document is left as it was."""
        doc = legacy_record_document("2024-01-01")
        migrate_record(doc)
        assert "billPhoto" in doc["expenses"][0]["items"][0]
        assert "morningSales" not in doc

    def test_conflicting_photos_flagged(self):
        """Test an item with both photo fields is flagged and keeps the list."""
        doc = legacy_record_document("2024-01-01", "old")
        doc["expenses"][0]["items"][0]["billPhotos"] = ["new1", "new2"]

        record, changed, flagged = migrate_record(doc)

        assert changed is True
        assert flagged == ["item-1"]
        assert record.expenses[0].items[0].bill_photos == ["new1", "new2"]

    def test_idempotent(self):
        """Test migrate(migrate(R)) == migrate(R)."""
        first = migrate_records([legacy_record_document("2024-01-01")])
        second = migrate_records([r.to_document() for r in first.records])

        assert first.needs_update is True
        assert second.needs_update is False
        assert second.records == first.records

    def test_batch_needs_update_if_any_changed(self, sample_record):
        """Test one legacy record marks the whole batch."""
        result = migrate_records([sample_record, legacy_record_document("2024-01-02")])
        assert result.needs_update is True
        assert [r.id for r in result.records] == ["2024-07-20", "2024-01-02"]
        assert all(isinstance(r, DailyRecord) for r in result.records)


class TestGasLogMigration:
    """Tests for migrate_gas_logs."""

    def test_legacy_logs_normalized(self):
        """Test USAGE and missing type become CONNECT, cylindersSwapped becomes count."""
        result = migrate_gas_logs([
            {"id": "a", "date": "2024-01-01", "cylindersSwapped": 2},
            {"id": "b", "date": "2024-01-02", "type": "USAGE", "count": 1},
            {"id": "c", "date": "2024-01-03", "type": "REFILL", "count": 4},
        ])

        assert result.needs_update is True
        assert [log.type for log in result.logs] == [
            GasLogType.CONNECT, GasLogType.CONNECT, GasLogType.REFILL,
        ]
        assert result.logs[0].count == 2
        assert "cylindersSwapped" not in result.logs[0].to_document()

    def test_current_logs_unchanged(self):
        """Test current logs need no update."""
        result = migrate_gas_logs([{"id": "a", "date": "d", "type": "REFILL", "count": 1}])
        assert result.needs_update is False

    def test_null_count_falls_back_to_legacy_field(self):
        """Test a null count is filled from cylindersSwapped."""
        result = migrate_gas_logs([
            {"id": "a", "date": "2024-01-01", "count": None, "cylindersSwapped": 3},
        ])
        assert result.logs[0].count == 3
        assert result.needs_update is True

    def test_none(self):
        """Test no logs at all."""
        assert migrate_gas_logs(None).logs == []


class TestBackupMigration:
    """Tests for migrate_backup."""

    def test_version_one_backup(self):
        """Test records and a string-list structure are both upgraded."""
        result = migrate_backup({
            "version": 1,
            "records": [legacy_record_document("2024-01-01")],
            "customStructure": {"Meat": ["Beef"]},
        })

        assert result.needs_update is True
        assert result.backup.version == 1
        assert result.backup.custom_structure["Meat"][0].name == "Beef"
        assert result.backup.gas_logs is None
        assert result.backup.gas_config is None

    def test_gas_sections_carried(self):
        """Test optional gas sections are migrated too."""
        result = migrate_backup({
            "version": 2,
            "records": [],
            "customStructure": {},
            "gasLogs": [{"id": "a", "date": "2024-01-01", "type": "USAGE", "count": 1}],
            "gasConfig": {"totalCylinders": 8, "cylindersPerBank": 2},
        })
        assert result.needs_update is True
        assert result.backup.gas_logs[0].type == GasLogType.CONNECT
        assert result.backup.gas_config.total_cylinders == 8
