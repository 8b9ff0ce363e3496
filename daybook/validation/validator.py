"""
Structural Validation for Untrusted Data

DESIGN DECISION: Validation is a set of plain predicates over parsed JSON
(dicts, lists, strings, numbers). They gate imported backups before
anything is migrated or written.

RULES:
1. Predicates NEVER raise. Any unexpected input is simply "not valid".
2. Matching is structural, not exact: unknown extra fields are ignored.
3. Known legacy variants are accepted here and upgraded by the migrator.
   Missing morningSales/isClosed are expected on old records; filling
   them in is the migrator's job, not ours.
"""

from typing import Any

# On-disk field names (camelCase, as written by every app version)
LEGACY_PHOTO_FIELD = "billPhoto"
PHOTO_LIST_FIELD = "billPhotos"

GAS_LOG_TYPES = frozenset({"REFILL", "CONNECT"})
LEGACY_GAS_LOG_TYPES = frozenset({"USAGE"})


def _is_number(value: Any) -> bool:
    # bool is an int subclass but is not a JSON number
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_integer(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and value.is_integer()


def _is_count(value: Any) -> bool:
    return _is_integer(value) and value >= 0


def _optional(obj: dict, key: str, check) -> bool:
    """An absent or null field passes; a present one must satisfy check."""
    return obj.get(key) is None or check(obj[key])


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def is_expense_item(obj: Any) -> bool:
    """
    Item: string id/name, numeric amount.

    Both photo fields are independently optional: the legacy single
    photo (string) and the current photo list (array of strings).
    """
    if not isinstance(obj, dict):
        return False
    if not isinstance(obj.get("id"), str) or not isinstance(obj.get("name"), str):
        return False
    if not _is_number(obj.get("amount")):
        return False

    if LEGACY_PHOTO_FIELD in obj and not isinstance(obj[LEGACY_PHOTO_FIELD], str):
        return False
    if PHOTO_LIST_FIELD in obj and not _is_string_list(obj[PHOTO_LIST_FIELD]):
        return False

    return True


def is_expense_category(obj: Any) -> bool:
    """Category: string id/name and a list of valid items."""
    return (
        isinstance(obj, dict)
        and isinstance(obj.get("id"), str)
        and isinstance(obj.get("name"), str)
        and isinstance(obj.get("items"), list)
        and all(is_expense_item(item) for item in obj["items"])
    )


def is_daily_record(obj: Any) -> bool:
    """
    Record: string id/date, numeric totalSales, list of valid categories.

    morningSales (number) and isClosed (bool) are optional; null counts
    as absent.
    """
    return (
        isinstance(obj, dict)
        and isinstance(obj.get("id"), str)
        and isinstance(obj.get("date"), str)
        and _is_number(obj.get("totalSales"))
        and _optional(obj, "morningSales", _is_number)
        and _optional(obj, "isClosed", lambda v: isinstance(v, bool))
        and isinstance(obj.get("expenses"), list)
        and all(is_expense_category(cat) for cat in obj["expenses"])
    )


def is_expense_structure_item(obj: Any) -> bool:
    """Current template entry: {name: string, defaultValue: number}."""
    return (
        isinstance(obj, dict)
        and isinstance(obj.get("name"), str)
        and _is_number(obj.get("defaultValue"))
    )


def is_custom_structure(obj: Any) -> bool:
    """
    Template mapping: an object (not an array) whose values are either
    ALL lists of structure items (current) or ALL lists of strings (legacy).
    An empty object is valid.
    """
    if not isinstance(obj, dict):
        return False
    values = list(obj.values())
    if not all(isinstance(v, list) for v in values):
        return False

    is_current = all(
        all(is_expense_structure_item(entry) for entry in v)
        for v in values
    )
    is_legacy = all(_is_string_list(v) for v in values)
    return is_current or is_legacy


def is_gas_log(obj: Any) -> bool:
    """
    Gas event: string id/date and a non-negative integer count.

    Older exports stored the count as cylindersSwapped and the
    connect event as USAGE; a missing type is also legacy.
    """
    if not isinstance(obj, dict):
        return False
    if not isinstance(obj.get("id"), str) or not isinstance(obj.get("date"), str):
        return False

    log_type = obj.get("type")
    if log_type is not None and (
        not isinstance(log_type, str)
        or log_type not in GAS_LOG_TYPES | LEGACY_GAS_LOG_TYPES
    ):
        return False

    if not _optional(obj, "notes", lambda v: isinstance(v, str)):
        return False
    if obj.get("count") is not None:
        return _is_count(obj["count"])
    return _optional(obj, "cylindersSwapped", _is_count)


def is_gas_config(obj: Any) -> bool:
    """Gas config: an object whose known counts, when present, are integers >= 0."""
    if not isinstance(obj, dict):
        return False
    return all(
        _is_count(obj[key])
        for key in ("totalCylinders", "cylindersPerBank")
        if key in obj
    )


def is_daily_record_list(obj: Any) -> bool:
    """The oldest export format: a bare array of records."""
    return isinstance(obj, list) and all(is_daily_record(rec) for rec in obj)


def is_backup_data(obj: Any) -> bool:
    """Backup document: numeric version, valid records, valid structure."""
    if not isinstance(obj, dict):
        return False
    if not _is_number(obj.get("version")):
        return False
    if not is_daily_record_list(obj.get("records")):
        return False
    if not is_custom_structure(obj.get("customStructure")):
        return False

    # Optional sections; null counts as absent
    if not _optional(
        obj,
        "gasLogs",
        lambda logs: isinstance(logs, list) and all(is_gas_log(log) for log in logs),
    ):
        return False
    return _optional(obj, "gasConfig", is_gas_config)
