# taskhold/models/label.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, ForeignKey, String, Text
from sqlmodel import Field, SQLModel

from utils.datetime_utils import utc_now


class Label(SQLModel, table=True):
    __tablename__ = "labels"
    id: str = Field(primary_key=True)
    name: str = Field(unique=True, index=True)
    color: str = "#808080"
    description: Optional[str] = None
    sort_order: int = 0
    integrations: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class TaskLabel(SQLModel, table=True):
    __tablename__ = "task_labels"

    task_id: str = Field(
        sa_column=Column(String, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True)
    )
    label_id: str = Field(
        sa_column=Column(String, ForeignKey("labels.id", ondelete="CASCADE"), primary_key=True)
    )


__all__ = ["Label", "TaskLabel"]
