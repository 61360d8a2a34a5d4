"""Closed value sets for task fields and integration providers."""
from __future__ import annotations

import re

from core.errors import ValidationError

TASK_STATUSES = ("pending", "in_progress", "completed", "cancelled")
OPEN_STATUSES = ("pending", "in_progress")

ENERGY_MIN = 1
ENERGY_MAX = 5

ENHANCEMENT_TYPES = ("note", "checkpoint", "resource")

# Provider names end up inside a JSON path, so they are whitelisted.
KNOWN_PROVIDERS = ("todoist", "msToDo", "notion", "github", "linear")

_PROVIDER_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")


def validate_status(value: str) -> str:
    if value not in TASK_STATUSES:
        raise ValidationError(
            f"Invalid status {value!r}; expected one of {', '.join(TASK_STATUSES)}"
        )
    return value


def validate_rating(value, field: str) -> int:
    """Validate a 1..5 scale value (energy level, focus quality)."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer between {ENERGY_MIN} and {ENERGY_MAX}")
    try:
        ivalue = int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"{field} must be an integer between {ENERGY_MIN} and {ENERGY_MAX}"
        ) from None
    if not ENERGY_MIN <= ivalue <= ENERGY_MAX:
        raise ValidationError(f"{field} must be between {ENERGY_MIN} and {ENERGY_MAX}, got {ivalue}")
    return ivalue


def validate_provider(name: str) -> str:
    """Return ``name`` if it is a known provider safe to embed in a JSON path."""

    if not isinstance(name, str) or not _PROVIDER_RE.match(name):
        raise ValidationError(f"Invalid integration provider name: {name!r}")
    if name not in KNOWN_PROVIDERS:
        raise ValidationError(
            f"Unknown integration provider {name!r}; expected one of {', '.join(KNOWN_PROVIDERS)}"
        )
    return name


def provider_path(name: str) -> str:
    """JSON path of a provider entry inside an integrations blob."""
    return f"$.{validate_provider(name)}"


__all__ = [
    "ENERGY_MAX",
    "ENERGY_MIN",
    "ENHANCEMENT_TYPES",
    "KNOWN_PROVIDERS",
    "OPEN_STATUSES",
    "TASK_STATUSES",
    "provider_path",
    "validate_provider",
    "validate_rating",
    "validate_status",
]
