"""Time tracking rows attached to a task."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, String
from sqlmodel import Field, SQLModel

from utils.datetime_utils import utc_now


class TimeEntry(SQLModel, table=True):
    __tablename__ = "time_entries"
    __table_args__ = (
        CheckConstraint("energy_used IS NULL OR energy_used BETWEEN 1 AND 5", name="ck_time_entries_energy"),
        CheckConstraint("focus_quality IS NULL OR focus_quality BETWEEN 1 AND 5", name="ck_time_entries_focus"),
        Index("idx_time_entries_task_id", "task_id"),
    )

    id: str = Field(primary_key=True)
    task_id: str = Field(
        sa_column=Column(String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    )
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None  # minutes, derived from start/end
    description: Optional[str] = None
    energy_used: Optional[int] = None
    focus_quality: Optional[int] = None
    created_at: datetime = Field(default_factory=utc_now)


__all__ = ["TimeEntry"]
