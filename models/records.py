"""Typed domain records handed back to callers of the engine.

Table models stay inside the storage layer; everything that crosses the
engine boundary is one of these plain dataclasses, with JSON columns already
decoded into mappings and integer flags turned into booleans.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from core.priorities import priority_label
from utils.datetime_utils import isoformat


def _serialise(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return isoformat(value)
    if isinstance(value, list):
        return [_serialise(item) for item in value]
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


class _Record:
    def to_dict(self) -> Dict[str, Any]:
        return {f.name: _serialise(getattr(self, f.name)) for f in fields(self)}  # type: ignore[arg-type]


@dataclass
class TaskRecord(_Record):
    id: str
    title: str
    description: Optional[str] = None
    project_id: Optional[str] = None
    parent_id: Optional[str] = None
    priority: int = 2
    status: str = "pending"
    due_date: Optional[date] = None
    due_time: Optional[str] = None
    estimated_duration: Optional[int] = None
    actual_duration: Optional[int] = None
    energy_level: int = 2
    context: str = "work"
    focus_time: bool = False
    notes: Optional[str] = None
    source_task: Optional[Dict[str, Any]] = None
    integrations: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    project_name: Optional[str] = None
    project_color: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["priority_label"] = priority_label(self.priority)
        return payload


@dataclass
class ProjectRecord(_Record):
    id: str
    name: str
    description: Optional[str] = None
    color: str = "#808080"
    icon: Optional[str] = None
    parent_id: Optional[str] = None
    sort_order: int = 0
    is_favorite: bool = False
    is_archived: bool = False
    integrations: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class LabelRecord(_Record):
    id: str
    name: str
    color: str = "#808080"
    description: Optional[str] = None
    sort_order: int = 0
    integrations: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class TimeEntryRecord(_Record):
    id: str
    task_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    description: Optional[str] = None
    energy_used: Optional[int] = None
    focus_quality: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass
class EnhancementRecord(_Record):
    id: str
    task_id: str
    type: str
    content: str
    sort_order: int = 0
    completed: bool = False
    created_at: Optional[datetime] = None


@dataclass
class IntegrationRecord(_Record):
    id: str
    name: str
    is_active: bool = False
    config: Optional[Dict[str, Any]] = None
    last_sync_at: Optional[datetime] = None
    sync_token: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class TaskStatistics(_Record):
    total: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    cancelled: int = 0
    overdue: int = 0
    by_project: Dict[str, int] = field(default_factory=dict)
    by_context: Dict[str, int] = field(default_factory=dict)
    by_energy_level: Dict[int, int] = field(default_factory=dict)


__all__ = [
    "EnhancementRecord",
    "IntegrationRecord",
    "LabelRecord",
    "ProjectRecord",
    "TaskRecord",
    "TaskStatistics",
    "TimeEntryRecord",
]
