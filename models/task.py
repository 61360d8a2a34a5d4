# taskhold/models/task.py
from datetime import date, datetime
from typing import Optional

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, String, Text, text
from sqlmodel import Field, SQLModel

from utils.datetime_utils import utc_now


class Task(SQLModel, table=True):
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed', 'cancelled')",
            name="ck_tasks_status",
        ),
        CheckConstraint("energy_level BETWEEN 1 AND 5", name="ck_tasks_energy_level"),
        Index("idx_tasks_project_id", "project_id"),
        Index("idx_tasks_status", "status"),
        Index("idx_tasks_due_date", "due_date", sqlite_where=text("due_date IS NOT NULL")),
        Index("idx_tasks_parent_id", "parent_id", sqlite_where=text("parent_id IS NOT NULL")),
        Index("idx_tasks_updated_at", "updated_at"),
    )

    id: str = Field(primary_key=True)
    title: str
    description: Optional[str] = None
    project_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String, ForeignKey("projects.id"), nullable=True),
    )
    parent_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String, ForeignKey("tasks.id"), nullable=True),
    )
    priority: int = 2
    status: str = "pending"       # pending / in_progress / completed / cancelled
    due_date: Optional[date] = None
    due_time: Optional[str] = None  # HH:MM
    estimated_duration: Optional[int] = None  # minutes
    actual_duration: Optional[int] = None  # minutes
    energy_level: int = 2
    context: str = "work"
    focus_time: bool = False
    notes: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    source_task: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    integrations: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
