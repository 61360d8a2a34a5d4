# taskhold/services/tasks.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from sqlmodel import Session

from core.errors import NotFound, ValidationError
from models import Task
from models.records import TaskRecord
from services.query_builder import TaskFilters, compile_task_query, task_select, tasks
from storage.mapper import task_from_row, task_to_row
from utils.datetime_utils import utc_now
from utils.ids import generate_id

# Columns with a non-null default: an explicit None on create means "use the default".
_DEFAULTED = {"priority", "status", "energy_level", "context", "focus_time"}


def _apply_completion(row: Dict[str, Any], previous_status: Optional[str], now: datetime) -> None:
    """Stamp or clear ``completed_at`` when the status crosses ``completed``."""

    status = row.get("status")
    if status is None or "completed_at" in row:
        return
    if status == "completed" and previous_status != "completed":
        row["completed_at"] = now
    elif status != "completed" and previous_status == "completed":
        row["completed_at"] = None


class TaskService:
    def __init__(self, session_factory: Callable[[], Session], *, clock: Callable[[], datetime] = utc_now):
        self._session_factory = session_factory
        self._clock = clock

    def create(self, data: Mapping[str, Any]) -> TaskRecord:
        payload = {k: v for k, v in dict(data).items() if not (v is None and k in _DEFAULTED)}
        task_id = payload.pop("id", None) or generate_id("task_")
        if not isinstance(task_id, str):
            raise ValidationError("id must be a string")
        if "title" not in payload:
            raise ValidationError("title is required")
        row = task_to_row(payload)
        if row.get("parent_id") == task_id:
            raise ValidationError("A task cannot be its own parent")
        now = self._clock()
        _apply_completion(row, None, now)

        with self._session_factory() as s:
            t = Task(id=task_id, created_at=now, updated_at=now, **row)
            s.add(t)
            s.commit()
        return self.get(task_id)

    def get(self, task_id: str) -> TaskRecord:
        with self._session_factory() as s:
            row = s.exec(task_select().where(tasks.c.id == task_id)).mappings().first()
            if row is None:
                raise NotFound("Task not found")
            return task_from_row(row)

    def list(self, filters: Union[TaskFilters, Mapping[str, Any], None] = None) -> List[TaskRecord]:
        query = compile_task_query(filters)
        with self._session_factory() as s:
            rows = s.exec(query.statement).mappings().all()
            return [task_from_row(row) for row in rows]

    def update(self, task_id: str, updates: Mapping[str, Any]) -> TaskRecord:
        if not updates:
            raise ValidationError("No fields to update")
        if "id" in updates:
            raise ValidationError("Task id cannot be changed")
        row = task_to_row(updates)
        now = self._clock()
        with self._session_factory() as s:
            t = s.get(Task, task_id)
            if not t:
                raise NotFound("Task not found")
            if row.get("parent_id") is not None:
                self._check_parent(s, task_id, row["parent_id"])
            _apply_completion(row, t.status, now)
            for key, value in row.items():
                setattr(t, key, value)
            t.updated_at = now
            s.add(t)
            s.commit()
        return self.get(task_id)

    def delete(self, task_id: str) -> int:
        with self._session_factory() as s:
            t = s.get(Task, task_id)
            if not t:
                raise NotFound("Task not found")
            s.delete(t)
            s.commit()
        return 1

    def _check_parent(self, s: Session, task_id: str, parent_id: str) -> None:
        """Reject a parent that is the task itself or one of its descendants."""

        seen = set()
        current: Optional[str] = parent_id
        while current is not None and current not in seen:
            if current == task_id:
                raise ValidationError("Task hierarchy cannot contain cycles")
            seen.add(current)
            parent = s.get(Task, current)
            current = parent.parent_id if parent else None


__all__ = ["TaskService"]
