"""Provider-level integration configuration, one row per external service."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel

from utils.datetime_utils import utc_now


class Integration(SQLModel, table=True):
    __tablename__ = "integrations"

    id: str = Field(primary_key=True)
    name: str = Field(unique=True, index=True)
    is_active: bool = False
    config: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    last_sync_at: Optional[datetime] = None
    sync_token: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


__all__ = ["Integration"]
