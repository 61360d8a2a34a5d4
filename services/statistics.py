# taskhold/services/statistics.py
from __future__ import annotations

from datetime import date
from typing import Callable, Optional

from sqlalchemy import func, select
from sqlmodel import Session

from models import Project, Task
from models.records import TaskStatistics
from utils.datetime_utils import local_today

tasks = Task.__table__
projects = Project.__table__


class StatisticsAggregator:
    """Task counts grouped by status, project, context and energy level."""

    def __init__(self, session_factory: Callable[[], Session], *, today: Callable[[], date] = local_today):
        self._session_factory = session_factory
        self._today = today

    def collect(self, today: Optional[date] = None) -> TaskStatistics:
        today = today or self._today()
        stats = TaskStatistics()
        with self._session_factory() as session:
            # All reads share one transaction so the counts are consistent.
            with session.begin():
                conn = session.connection()

                for status, count in conn.execute(
                    select(tasks.c.status, func.count()).group_by(tasks.c.status)
                ):
                    stats.total += count
                    if hasattr(stats, status):
                        setattr(stats, status, count)

                stats.overdue = conn.execute(
                    select(func.count())
                    .select_from(tasks)
                    .where(tasks.c.due_date < today)
                    .where(tasks.c.status != "completed")
                ).scalar_one()

                stats.by_project = {
                    name: count
                    for name, count in conn.execute(
                        select(projects.c.name, func.count(tasks.c.id))
                        .select_from(tasks.join(projects, tasks.c.project_id == projects.c.id))
                        .group_by(projects.c.name)
                        .order_by(projects.c.name)
                    )
                }
                stats.by_context = {
                    context: count
                    for context, count in conn.execute(
                        select(tasks.c.context, func.count())
                        .group_by(tasks.c.context)
                        .order_by(tasks.c.context)
                    )
                }
                stats.by_energy_level = {
                    level: count
                    for level, count in conn.execute(
                        select(tasks.c.energy_level, func.count())
                        .group_by(tasks.c.energy_level)
                        .order_by(tasks.c.energy_level)
                    )
                }
        return stats


__all__ = ["StatisticsAggregator"]
