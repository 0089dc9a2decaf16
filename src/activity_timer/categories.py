"""Resolution of free-form category names into category references."""

from __future__ import annotations

from typing import Iterable, Optional

from .models import CategoryRef, CustomCategory, PresetCategory, TimerRecord
from .normalization import normalize_activity_name, normalize_category_name

UNCATEGORIZED = "uncategorized"


class CategoryError(ValueError):
    """Raised when a category name cannot be resolved."""


class UnknownCategoryError(CategoryError):
    pass


class AmbiguousCategoryError(CategoryError):
    """The name matches both a preset tag and a custom category."""


def find_preset(name: str) -> Optional[PresetCategory]:
    key = normalize_category_name(name)
    if key is None:
        return None
    try:
        return PresetCategory(key)
    except ValueError:
        return None


def find_custom(
    name: str, custom_categories: Iterable[CustomCategory]
) -> Optional[CustomCategory]:
    key = normalize_category_name(name)
    if key is None:
        return None
    for category in custom_categories:
        if category.name.casefold() == key:
            return category
    return None


def resolve_category(
    name: Optional[str], custom_categories: Iterable[CustomCategory]
) -> Optional[CategoryRef]:
    """Resolve a user-entered category name.

    Raises ``AmbiguousCategoryError`` when the name could mean either a preset
    or a custom category, and ``UnknownCategoryError`` when it means neither.
    """
    cleaned = normalize_activity_name(name)
    if cleaned is None:
        return None

    preset = find_preset(cleaned)
    custom = find_custom(cleaned, custom_categories)
    if preset and custom:
        raise AmbiguousCategoryError(
            f"Category {cleaned!r} matches both a preset and a custom category"
        )
    if preset:
        return CategoryRef.preset(preset)
    if custom:
        return CategoryRef.custom(custom.name)
    raise UnknownCategoryError(f"Unknown category {cleaned!r}")


def category_label(record: TimerRecord) -> str:
    return record.category_label or UNCATEGORIZED
