"""Utilities to normalize user-entered activity and category names."""

from __future__ import annotations

import re
from typing import Optional

_WHITESPACE_PATTERN = re.compile(r"\s+")
_HEX_COLOR_PATTERN = re.compile(r"^#?([0-9a-fA-F]{6})$")


def normalize_activity_name(value: Optional[str]) -> Optional[str]:
    """Trim and collapse whitespace; blank names become None."""
    if not value:
        return None
    normalized = _WHITESPACE_PATTERN.sub(" ", value).strip()
    return normalized or None


def normalize_category_name(value: Optional[str]) -> Optional[str]:
    normalized = normalize_activity_name(value)
    return normalized.lower() if normalized else None


def normalize_hex_color(value: Optional[str], default: str = "#007AFF") -> str:
    """Return ``#RRGGBB`` in upper case, falling back to ``default``."""
    if not value:
        return default
    match = _HEX_COLOR_PATTERN.match(value.strip())
    if not match:
        return default
    return f"#{match.group(1).upper()}"
