# taskhold/services/enhancements.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, List, Mapping

from sqlalchemy import func
from sqlmodel import Session, select

from core.errors import NotFound, ValidationError
from core.vocabulary import ENHANCEMENT_TYPES
from models import Task, TaskEnhancement
from models.records import EnhancementRecord
from storage.mapper import ENHANCEMENT_FIELDS, enhancement_from_row, model_row, to_row
from utils.datetime_utils import utc_now
from utils.ids import generate_id


class EnhancementService:
    """Notes, checkpoints and resources attached to a task."""

    def __init__(self, session_factory: Callable[[], Session], *, clock: Callable[[], datetime] = utc_now):
        self._session_factory = session_factory
        self._clock = clock

    def add(self, task_id: str, kind: str, content: str, **extra: Any) -> EnhancementRecord:
        if kind not in ENHANCEMENT_TYPES:
            raise ValidationError(
                f"Invalid enhancement type {kind!r}; expected one of {', '.join(ENHANCEMENT_TYPES)}"
            )
        row = to_row({"content": content, **extra}, ENHANCEMENT_FIELDS, "enhancement")
        enhancement_id = generate_id("enh_")
        with self._session_factory() as session:
            if session.get(Task, task_id) is None:
                raise NotFound("Task not found")
            if "sort_order" not in row:
                # Append after the last existing entry of the task.
                last = session.exec(
                    select(func.max(TaskEnhancement.sort_order)).where(TaskEnhancement.task_id == task_id)
                ).one()
                row["sort_order"] = 0 if last is None else last + 1
            enhancement = TaskEnhancement(
                id=enhancement_id,
                task_id=task_id,
                type=kind,
                created_at=self._clock(),
                **row,
            )
            session.add(enhancement)
            session.commit()
        return self.get(enhancement_id)

    def get(self, enhancement_id: str) -> EnhancementRecord:
        with self._session_factory() as session:
            enhancement = session.get(TaskEnhancement, enhancement_id)
            if not enhancement:
                raise NotFound("Enhancement not found")
            return enhancement_from_row(model_row(enhancement))

    def list_for_task(self, task_id: str) -> List[EnhancementRecord]:
        with self._session_factory() as session:
            if session.get(Task, task_id) is None:
                raise NotFound("Task not found")
            stmt = (
                select(TaskEnhancement)
                .where(TaskEnhancement.task_id == task_id)
                .order_by(TaskEnhancement.sort_order.asc(), TaskEnhancement.created_at.asc())
            )
            return [enhancement_from_row(model_row(e)) for e in session.exec(stmt)]

    def update(self, enhancement_id: str, updates: Mapping[str, Any]) -> EnhancementRecord:
        if not updates:
            raise ValidationError("No fields to update")
        row = to_row(updates, ENHANCEMENT_FIELDS, "enhancement")
        with self._session_factory() as session:
            enhancement = session.get(TaskEnhancement, enhancement_id)
            if not enhancement:
                raise NotFound("Enhancement not found")
            for key, value in row.items():
                setattr(enhancement, key, value)
            session.add(enhancement)
            session.commit()
        return self.get(enhancement_id)

    def delete(self, enhancement_id: str) -> int:
        with self._session_factory() as session:
            enhancement = session.get(TaskEnhancement, enhancement_id)
            if not enhancement:
                raise NotFound("Enhancement not found")
            session.delete(enhancement)
            session.commit()
        return 1


__all__ = ["EnhancementService"]
