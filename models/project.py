# taskhold/models/project.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, ForeignKey, Index, String, Text, text
from sqlmodel import Field, SQLModel

from utils.datetime_utils import utc_now


class Project(SQLModel, table=True):
    __tablename__ = "projects"
    __table_args__ = (
        Index("idx_projects_parent_id", "parent_id", sqlite_where=text("parent_id IS NOT NULL")),
    )

    id: str = Field(primary_key=True)
    name: str
    description: Optional[str] = None
    color: str = "#808080"
    icon: Optional[str] = None
    parent_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String, ForeignKey("projects.id"), nullable=True),
    )
    sort_order: int = 0
    is_favorite: bool = False
    is_archived: bool = False
    integrations: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


__all__ = ["Project"]
