# taskhold/services/time_tracking.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional

from sqlmodel import Session, select

from core.errors import NotFound, ValidationError
from models import Task, TimeEntry
from models.records import TimeEntryRecord
from storage.mapper import TIME_ENTRY_FIELDS, model_row, time_entry_from_row, to_row
from utils.datetime_utils import ensure_utc, minutes_between, utc_now
from utils.ids import generate_id


def _duration(start: datetime, end: Optional[datetime]) -> Optional[int]:
    if end is None:
        return None
    if ensure_utc(end) < ensure_utc(start):
        raise ValidationError("end_time must not be earlier than start_time")
    return minutes_between(start, end)


class TimeTrackingService:
    """Time entries per task; ``duration`` is always derived from start/end."""

    def __init__(self, session_factory: Callable[[], Session], *, clock: Callable[[], datetime] = utc_now):
        self._session_factory = session_factory
        self._clock = clock

    def start(self, task_id: str, description: Optional[str] = None) -> TimeEntryRecord:
        return self.create({"task_id": task_id, "start_time": self._clock(), "description": description})

    def stop(self, entry_id: str, end_time: Any = None) -> TimeEntryRecord:
        row = to_row({"end_time": end_time or self._clock()}, TIME_ENTRY_FIELDS, "time entry")
        with self._session_factory() as s:
            entry = s.get(TimeEntry, entry_id)
            if not entry:
                raise NotFound("Time entry not found")
            if entry.end_time is not None:
                raise ValidationError("Time entry is already stopped")
            entry.duration = _duration(entry.start_time, row["end_time"])
            entry.end_time = row["end_time"]
            s.add(entry)
            s.commit()
        return self.get(entry_id)

    def create(self, data: Mapping[str, Any]) -> TimeEntryRecord:
        payload = {k: v for k, v in dict(data).items() if v is not None}
        task_id = payload.pop("task_id", None)
        entry_id = payload.pop("id", None) or generate_id("time_")
        if not task_id:
            raise ValidationError("task_id is required")
        if "start_time" not in payload:
            raise ValidationError("start_time is required")
        row = to_row(payload, TIME_ENTRY_FIELDS, "time entry")
        duration = _duration(row["start_time"], row.get("end_time"))
        with self._session_factory() as s:
            if s.get(Task, task_id) is None:
                raise NotFound("Task not found")
            entry = TimeEntry(
                id=entry_id,
                task_id=task_id,
                duration=duration,
                created_at=self._clock(),
                **row,
            )
            s.add(entry)
            s.commit()
        return self.get(entry_id)

    def get(self, entry_id: str) -> TimeEntryRecord:
        with self._session_factory() as s:
            entry = s.get(TimeEntry, entry_id)
            if not entry:
                raise NotFound("Time entry not found")
            return time_entry_from_row(model_row(entry))

    def list_for_task(self, task_id: str) -> List[TimeEntryRecord]:
        with self._session_factory() as s:
            if s.get(Task, task_id) is None:
                raise NotFound("Task not found")
            stmt = (
                select(TimeEntry)
                .where(TimeEntry.task_id == task_id)
                .order_by(TimeEntry.start_time.asc())
            )
            return [time_entry_from_row(model_row(entry)) for entry in s.exec(stmt)]

    def delete(self, entry_id: str) -> int:
        with self._session_factory() as s:
            entry = s.get(TimeEntry, entry_id)
            if not entry:
                raise NotFound("Time entry not found")
            s.delete(entry)
            s.commit()
        return 1


__all__ = ["TimeTrackingService"]
