"""Form value helpers shared by field rules and payload builders.

Form values arrive as strings (or lists for multi-value inputs). These
helpers decide what counts as "empty" and how numeric strings are read.
"""

import math
from collections.abc import Mapping
from typing import Any


def is_blank(value: Any) -> bool:
    """True for ``None``, whitespace-only strings and empty collections.

    ``False`` and ``0`` are values, not blanks.
    """
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False


def parse_number(value: Any) -> float | None:
    """Parse a numeric form value, returning ``None`` when it is not a finite number."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def to_number(value: Any, default: float = 0) -> float | int:
    """Parse a numeric form value with a fallback; integral values come back as ``int``."""
    number = parse_number(value)
    if number is None:
        return default
    return int(number) if number.is_integer() else number


def to_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def compact(data: Mapping[str, Any]) -> dict[str, Any]:
    """Drop blank entries (recursively for nested mappings)."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, Mapping):
            value = compact(value)
        if not is_blank(value):
            result[key] = value
    return result
