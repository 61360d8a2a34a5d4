"""Task priority scale: 1 is the most urgent, 4 the least."""
from __future__ import annotations

from typing import Dict

PRIORITY_LABELS: Dict[int, str] = {
    1: "Urgent",
    2: "High",
    3: "Normal",
    4: "Low",
}

HIGHEST_PRIORITY = min(PRIORITY_LABELS)
LOWEST_PRIORITY = max(PRIORITY_LABELS)
DEFAULT_PRIORITY = 2


def normalize_priority(value: int | str | None) -> int:
    """Clamp external values onto the scale; unparsable input gets the default."""
    if value is None or isinstance(value, bool):
        return DEFAULT_PRIORITY
    try:
        ivalue = int(value)
    except (TypeError, ValueError):
        return DEFAULT_PRIORITY
    return max(HIGHEST_PRIORITY, min(LOWEST_PRIORITY, ivalue))


def priority_label(value: int, *, short: bool = False) -> str:
    level = normalize_priority(value)
    return f"P{level}" if short else PRIORITY_LABELS[level]


def is_high_priority(value: int, threshold: int = DEFAULT_PRIORITY) -> bool:
    return normalize_priority(value) <= threshold


__all__ = [
    "DEFAULT_PRIORITY",
    "HIGHEST_PRIORITY",
    "LOWEST_PRIORITY",
    "PRIORITY_LABELS",
    "is_high_priority",
    "normalize_priority",
    "priority_label",
]
