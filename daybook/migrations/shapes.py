"""
Tagged Legacy Shapes

Older app versions wrote two things differently:
- template entries as bare strings instead of {name, defaultValue}
- a single billPhoto string instead of a billPhotos list

Each raw value is classified ONCE into a closed set of tagged variants
and immediately resolved to the current shape. Nothing downstream of
the migrator looks at legacy fields again.
"""

from typing import Any, Literal, Union

from pydantic import BaseModel

from daybook.models.record import ExpenseStructureItem
from daybook.validation.validator import LEGACY_PHOTO_FIELD, PHOTO_LIST_FIELD


# =============================================================================
# TEMPLATE ENTRIES
# =============================================================================

class LegacyStringList(BaseModel):
    """Pre-default-value template: a category maps to item names."""

    kind: Literal["legacy_string_list"] = "legacy_string_list"
    names: list[str]

    def resolve(self) -> list[ExpenseStructureItem]:
        return [ExpenseStructureItem(name=name, default_value=0) for name in self.names]


class CurrentStructuredList(BaseModel):
    """Current template: a category maps to {name, defaultValue} entries."""

    kind: Literal["current_structured_list"] = "current_structured_list"
    items: list[ExpenseStructureItem]

    def resolve(self) -> list[ExpenseStructureItem]:
        return list(self.items)


StructureEntry = Union[LegacyStringList, CurrentStructuredList]


def classify_structure_entry(value: list[Any]) -> StructureEntry:
    """
    Tag one category's template list.

    A non-empty list of strings is legacy; everything else (including
    an empty list) is already current.
    """
    if value and all(isinstance(entry, str) for entry in value):
        return LegacyStringList(names=list(value))

    items = [
        entry
        if isinstance(entry, ExpenseStructureItem)
        else ExpenseStructureItem.model_validate(entry)
        for entry in value
    ]
    return CurrentStructuredList(items=items)


# =============================================================================
# ITEM PHOTOS
# =============================================================================

class LegacySinglePhoto(BaseModel):
    """Old item: one billPhoto string and no (or an empty) billPhotos list."""

    kind: Literal["legacy_single_photo"] = "legacy_single_photo"
    photo: str

    def resolve(self) -> list[str]:
        return [self.photo] if self.photo else []


class CurrentPhotoList(BaseModel):
    """Current item: a billPhotos list (possibly absent, meaning empty)."""

    kind: Literal["current_photo_list"] = "current_photo_list"
    photos: list[str]

    def resolve(self) -> list[str]:
        return list(self.photos)


class ConflictingPhotos(BaseModel):
    """
    Hand-edited item carrying BOTH a non-empty billPhotos list and a
    billPhoto string. The list wins; the item is flagged for review.
    """

    kind: Literal["conflicting_photos"] = "conflicting_photos"
    photos: list[str]
    legacy_photo: str

    def resolve(self) -> list[str]:
        return list(self.photos)


PhotoShape = Union[LegacySinglePhoto, CurrentPhotoList, ConflictingPhotos]


def classify_item_photos(item: dict) -> PhotoShape:
    """Tag the photo fields of one raw item document."""
    legacy = item.get(LEGACY_PHOTO_FIELD)
    photos = item.get(PHOTO_LIST_FIELD) or []

    if isinstance(legacy, str):
        if photos:
            return ConflictingPhotos(photos=photos, legacy_photo=legacy)
        return LegacySinglePhoto(photo=legacy)
    return CurrentPhotoList(photos=photos)
