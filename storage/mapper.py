"""Conversion between persisted rows and typed records.

Rows come back from SQLite with booleans as integers and the wrapper
columns (``source_task``, ``integrations``, ``config``) as JSON text. The
``*_from_row`` helpers decode them into records; the ``*_to_row`` helpers
validate caller input against a closed set of writable columns and encode it
for storage.
"""
from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, Mapping, Optional

from core.errors import ValidationError
from core.priorities import normalize_priority
from core.vocabulary import validate_provider, validate_rating, validate_status
from models.records import (
    EnhancementRecord,
    IntegrationRecord,
    LabelRecord,
    ProjectRecord,
    TaskRecord,
    TimeEntryRecord,
)
from utils.datetime_utils import (
    coerce_date,
    coerce_datetime,
    coerce_time,
    ensure_utc,
    parse_rfc3339,
)

logger = logging.getLogger("taskhold.engine")


# ----- JSON columns -----
def decode_json(payload: Optional[str]) -> Any:
    if payload is None or payload == "":
        return None
    if not isinstance(payload, str):
        return payload
    try:
        return json.loads(payload)
    except json.JSONDecodeError as exc:
        logger.warning("Stored JSON is malformed and reads as empty: %s", exc)
        return None


def encode_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    try:
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Value is not JSON serialisable: {exc}") from None


def decode_integrations(payload: Optional[str]) -> Optional[Dict[str, Any]]:
    data = decode_json(payload)
    if isinstance(data, dict):
        return data
    return None


def encode_integrations(value: Any) -> Optional[str]:
    """Validate a provider-keyed mapping and encode it."""

    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ValidationError("integrations must be a mapping of provider name to sync state")
    for provider in value:
        validate_provider(provider)
    return encode_json(dict(value))


def _encode_config(value: Any) -> Optional[str]:
    if value is not None and not isinstance(value, Mapping):
        raise ValidationError("config must be a mapping")
    return encode_json(dict(value) if value is not None else None)


# ----- scalar coercion -----
def as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return parse_rfc3339(str(value))


def _as_date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return coerce_date(value)


def _required_text(field: str) -> Callable[[Any], str]:
    def convert(value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{field} is required")
        return value.strip()

    return convert


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"Expected text, got {type(value).__name__}")
    return value


def _optional_ref(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"References must be string ids, got {value!r}")
    return value


def _int(field: str, *, minimum: Optional[int] = 0) -> Callable[[Any], int]:
    def convert(value: Any) -> int:
        if isinstance(value, bool):
            raise ValidationError(f"{field} must be an integer")
        try:
            ivalue = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{field} must be an integer") from None
        if minimum is not None and ivalue < minimum:
            raise ValidationError(f"{field} must be >= {minimum}")
        return ivalue

    return convert


def _optional_int(field: str) -> Callable[[Any], Optional[int]]:
    convert = _int(field)

    def wrapper(value: Any) -> Optional[int]:
        return None if value is None else convert(value)

    return wrapper


def _optional_rating(field: str) -> Callable[[Any], Optional[int]]:
    def convert(value: Any) -> Optional[int]:
        return None if value is None else validate_rating(value, field)

    return convert


Codec = Dict[str, Callable[[Any], Any]]

TASK_FIELDS: Codec = {
    "title": _required_text("title"),
    "description": _optional_text,
    "project_id": _optional_ref,
    "parent_id": _optional_ref,
    "priority": normalize_priority,
    "status": validate_status,
    "due_date": lambda v: coerce_date(v, "due_date"),
    "due_time": coerce_time,
    "estimated_duration": _optional_int("estimated_duration"),
    "actual_duration": _optional_int("actual_duration"),
    "energy_level": lambda v: validate_rating(v, "energy_level"),
    "context": _required_text("context"),
    "focus_time": as_bool,
    "notes": _optional_text,
    "source_task": encode_json,
    "integrations": encode_integrations,
    "completed_at": lambda v: coerce_datetime(v, "completed_at"),
}

PROJECT_FIELDS: Codec = {
    "name": _required_text("name"),
    "description": _optional_text,
    "color": _required_text("color"),
    "icon": _optional_text,
    "parent_id": _optional_ref,
    "sort_order": _int("sort_order", minimum=None),
    "is_favorite": as_bool,
    "is_archived": as_bool,
    "integrations": encode_integrations,
}

LABEL_FIELDS: Codec = {
    "name": _required_text("name"),
    "color": _required_text("color"),
    "description": _optional_text,
    "sort_order": _int("sort_order", minimum=None),
    "integrations": encode_integrations,
}

TIME_ENTRY_FIELDS: Codec = {
    "start_time": lambda v: coerce_datetime(v, "start_time"),
    "end_time": lambda v: coerce_datetime(v, "end_time"),
    "description": _optional_text,
    "energy_used": _optional_rating("energy_used"),
    "focus_quality": _optional_rating("focus_quality"),
}

ENHANCEMENT_FIELDS: Codec = {
    "content": _required_text("content"),
    "sort_order": _int("sort_order", minimum=None),
    "completed": as_bool,
}

INTEGRATION_FIELDS: Codec = {
    "is_active": as_bool,
    "config": _encode_config,
    "last_sync_at": lambda v: coerce_datetime(v, "last_sync_at"),
    "sync_token": _optional_text,
}


def to_row(data: Mapping[str, Any], codec: Codec, entity: str) -> Dict[str, Any]:
    """Validate and encode caller-supplied fields for ``entity``."""

    unknown = sorted(set(data) - set(codec))
    if unknown:
        raise ValidationError(f"Unknown {entity} field(s): {', '.join(unknown)}")
    return {key: codec[key](value) for key, value in data.items()}


def task_to_row(data: Mapping[str, Any]) -> Dict[str, Any]:
    return to_row(data, TASK_FIELDS, "task")


def project_to_row(data: Mapping[str, Any]) -> Dict[str, Any]:
    return to_row(data, PROJECT_FIELDS, "project")


def label_to_row(data: Mapping[str, Any]) -> Dict[str, Any]:
    return to_row(data, LABEL_FIELDS, "label")


# ----- rows -> records -----
def task_from_row(row: Mapping[str, Any]) -> TaskRecord:
    return TaskRecord(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        project_id=row["project_id"],
        parent_id=row["parent_id"],
        priority=row["priority"],
        status=row["status"],
        due_date=_as_date(row["due_date"]),
        due_time=row["due_time"],
        estimated_duration=row["estimated_duration"],
        actual_duration=row["actual_duration"],
        energy_level=row["energy_level"],
        context=row["context"],
        focus_time=as_bool(row["focus_time"]),
        notes=row["notes"],
        source_task=decode_json(row["source_task"]),
        integrations=decode_integrations(row["integrations"]),
        created_at=_as_datetime(row["created_at"]),
        updated_at=_as_datetime(row["updated_at"]),
        completed_at=_as_datetime(row["completed_at"]),
        project_name=row.get("project_name"),
        project_color=row.get("project_color"),
    )


def project_from_row(row: Mapping[str, Any]) -> ProjectRecord:
    return ProjectRecord(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        color=row["color"],
        icon=row["icon"],
        parent_id=row["parent_id"],
        sort_order=row["sort_order"],
        is_favorite=as_bool(row["is_favorite"]),
        is_archived=as_bool(row["is_archived"]),
        integrations=decode_integrations(row["integrations"]),
        created_at=_as_datetime(row["created_at"]),
        updated_at=_as_datetime(row["updated_at"]),
    )


def label_from_row(row: Mapping[str, Any]) -> LabelRecord:
    return LabelRecord(
        id=row["id"],
        name=row["name"],
        color=row["color"],
        description=row["description"],
        sort_order=row["sort_order"],
        integrations=decode_integrations(row["integrations"]),
        created_at=_as_datetime(row["created_at"]),
        updated_at=_as_datetime(row["updated_at"]),
    )


def time_entry_from_row(row: Mapping[str, Any]) -> TimeEntryRecord:
    return TimeEntryRecord(
        id=row["id"],
        task_id=row["task_id"],
        start_time=_as_datetime(row["start_time"]),
        end_time=_as_datetime(row["end_time"]),
        duration=row["duration"],
        description=row["description"],
        energy_used=row["energy_used"],
        focus_quality=row["focus_quality"],
        created_at=_as_datetime(row["created_at"]),
    )


def enhancement_from_row(row: Mapping[str, Any]) -> EnhancementRecord:
    return EnhancementRecord(
        id=row["id"],
        task_id=row["task_id"],
        type=row["type"],
        content=row["content"],
        sort_order=row["sort_order"],
        completed=as_bool(row["completed"]),
        created_at=_as_datetime(row["created_at"]),
    )


def integration_from_row(row: Mapping[str, Any]) -> IntegrationRecord:
    config = decode_json(row["config"])
    return IntegrationRecord(
        id=row["id"],
        name=row["name"],
        is_active=as_bool(row["is_active"]),
        config=config if isinstance(config, dict) else None,
        last_sync_at=_as_datetime(row["last_sync_at"]),
        sync_token=row["sync_token"],
        created_at=_as_datetime(row["created_at"]),
    )


def model_row(obj: Any) -> Dict[str, Any]:
    """Column mapping of a loaded table model instance."""
    return {column.name: getattr(obj, column.name) for column in obj.__table__.columns}


__all__ = [
    "ENHANCEMENT_FIELDS",
    "INTEGRATION_FIELDS",
    "LABEL_FIELDS",
    "PROJECT_FIELDS",
    "TASK_FIELDS",
    "TIME_ENTRY_FIELDS",
    "as_bool",
    "decode_integrations",
    "decode_json",
    "encode_integrations",
    "encode_json",
    "enhancement_from_row",
    "integration_from_row",
    "label_from_row",
    "label_to_row",
    "model_row",
    "project_from_row",
    "project_to_row",
    "task_from_row",
    "task_to_row",
    "time_entry_from_row",
    "to_row",
]
