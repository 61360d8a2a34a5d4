"""Typed sub-records (notes, checkpoints, resources) hanging off a task."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, String, Text
from sqlmodel import Field, SQLModel

from utils.datetime_utils import utc_now


class TaskEnhancement(SQLModel, table=True):
    __tablename__ = "task_enhancements"
    __table_args__ = (
        CheckConstraint("type IN ('note', 'checkpoint', 'resource')", name="ck_task_enhancements_type"),
        Index("idx_task_enhancements_task_id", "task_id"),
    )

    id: str = Field(primary_key=True)
    task_id: str = Field(
        sa_column=Column(String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    )
    type: str
    content: str = Field(sa_column=Column(Text, nullable=False))
    sort_order: int = 0
    completed: bool = False
    created_at: datetime = Field(default_factory=utc_now)


__all__ = ["TaskEnhancement"]
