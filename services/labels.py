# taskhold/services/labels.py
from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Callable, List, Mapping

from sqlmodel import Session, select

from core.errors import NotFound, ValidationError
from models import Label, Task, TaskLabel
from models.records import LabelRecord
from storage.mapper import label_from_row, label_to_row, model_row
from utils.datetime_utils import utc_now
from utils.ids import generate_id


NAME_RE = re.compile(r"^.{1,40}$")
COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


class LabelService:
    def __init__(self, session_factory: Callable[[], Session], *, clock: Callable[[], datetime] = utc_now):
        self._session_factory = session_factory
        self._clock = clock

    def list(self) -> List[LabelRecord]:
        with self._session_factory() as session:
            stmt = select(Label).order_by(Label.sort_order.asc(), Label.name.asc())
            return [label_from_row(model_row(label)) for label in session.exec(stmt)]

    def create(self, data: Mapping[str, Any]) -> LabelRecord:
        payload = {k: v for k, v in dict(data).items() if v is not None}
        label_id = payload.pop("id", None) or generate_id("label_")
        row = label_to_row(payload)
        self._validate_name(row.get("name", ""))
        if "color" in row:
            self._validate_color(row["color"])
        now = self._clock()
        with self._session_factory() as session:
            label = Label(id=label_id, created_at=now, updated_at=now, **row)
            session.add(label)
            session.commit()
        return self.get(label_id)

    def get(self, label_id: str) -> LabelRecord:
        with self._session_factory() as session:
            label = session.get(Label, label_id)
            if not label:
                raise NotFound("Label not found")
            return label_from_row(model_row(label))

    def update(self, label_id: str, updates: Mapping[str, Any]) -> LabelRecord:
        if not updates:
            raise ValidationError("No fields to update")
        row = label_to_row(updates)
        if "name" in row:
            self._validate_name(row["name"])
        if "color" in row:
            self._validate_color(row["color"])
        with self._session_factory() as session:
            label = session.get(Label, label_id)
            if not label:
                raise NotFound("Label not found")
            for key, value in row.items():
                setattr(label, key, value)
            label.updated_at = self._clock()
            session.add(label)
            session.commit()
        return self.get(label_id)

    def delete(self, label_id: str) -> int:
        with self._session_factory() as session:
            label = session.get(Label, label_id)
            if not label:
                raise NotFound("Label not found")
            # task_labels rows go with it through ON DELETE CASCADE
            session.delete(label)
            session.commit()
        return 1

    def add_to_task(self, task_id: str, label_id: str) -> int:
        with self._session_factory() as session:
            if session.get(Task, task_id) is None:
                raise NotFound("Task not found")
            if session.get(Label, label_id) is None:
                raise NotFound("Label not found")
            link = session.get(TaskLabel, (task_id, label_id))
            if link:
                return 0
            session.add(TaskLabel(task_id=task_id, label_id=label_id))
            session.commit()
        return 1

    def remove_from_task(self, task_id: str, label_id: str) -> int:
        with self._session_factory() as session:
            link = session.get(TaskLabel, (task_id, label_id))
            if not link:
                return 0
            session.delete(link)
            session.commit()
        return 1

    def get_for_task(self, task_id: str) -> List[LabelRecord]:
        with self._session_factory() as session:
            if session.get(Task, task_id) is None:
                raise NotFound("Task not found")
            stmt = (
                select(Label)
                .join(TaskLabel, Label.id == TaskLabel.label_id)
                .where(TaskLabel.task_id == task_id)
                .order_by(Label.name.asc())
            )
            return [label_from_row(model_row(label)) for label in session.exec(stmt)]

    # ------------------------------------------------------------------
    def _validate_name(self, name: str) -> None:
        if not NAME_RE.match(name or ""):
            raise ValidationError("Label name must be between 1 and 40 characters")

    def _validate_color(self, color: str) -> None:
        if not COLOR_RE.match(color):
            raise ValidationError("Color must be in #RRGGBB format")


__all__ = ["LabelService"]
