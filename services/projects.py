# taskhold/services/projects.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional, Union

from sqlmodel import Session

from core.errors import NotFound, ValidationError
from models import Project
from models.records import ProjectRecord
from services.query_builder import ProjectFilters, compile_project_query
from storage.mapper import model_row, project_from_row, project_to_row
from utils.datetime_utils import utc_now
from utils.ids import generate_id


class ProjectService:
    def __init__(self, session_factory: Callable[[], Session], *, clock: Callable[[], datetime] = utc_now):
        self._session_factory = session_factory
        self._clock = clock

    def create(self, data: Mapping[str, Any]) -> ProjectRecord:
        payload = {k: v for k, v in dict(data).items() if v is not None}
        project_id = payload.pop("id", None) or generate_id("proj_")
        if "name" not in payload:
            raise ValidationError("name is required")
        row = project_to_row(payload)
        if row.get("parent_id") == project_id:
            raise ValidationError("A project cannot be its own parent")
        now = self._clock()
        with self._session_factory() as session:
            project = Project(id=project_id, created_at=now, updated_at=now, **row)
            session.add(project)
            session.commit()
        return self.get(project_id)

    def get(self, project_id: str) -> ProjectRecord:
        with self._session_factory() as session:
            project = session.get(Project, project_id)
            if project is None:
                raise NotFound("Project not found")
            return project_from_row(model_row(project))

    def list(self, filters: Union[ProjectFilters, Mapping[str, Any], None] = None) -> List[ProjectRecord]:
        query = compile_project_query(filters)
        with self._session_factory() as session:
            rows = session.exec(query.statement).mappings().all()
            return [project_from_row(row) for row in rows]

    def update(self, project_id: str, updates: Mapping[str, Any]) -> ProjectRecord:
        if not updates:
            raise ValidationError("No fields to update")
        if "id" in updates:
            raise ValidationError("Project id cannot be changed")
        row = project_to_row(updates)
        with self._session_factory() as session:
            project = session.get(Project, project_id)
            if project is None:
                raise NotFound("Project not found")
            if row.get("parent_id") is not None:
                self._check_parent(session, project_id, row["parent_id"])
            for key, value in row.items():
                setattr(project, key, value)
            project.updated_at = self._clock()
            session.add(project)
            session.commit()
        return self.get(project_id)

    def delete(self, project_id: str) -> int:
        with self._session_factory() as session:
            project = session.get(Project, project_id)
            if project is None:
                raise NotFound("Project not found")
            session.delete(project)
            session.commit()
        return 1

    def _check_parent(self, session: Session, project_id: str, parent_id: str) -> None:
        seen = set()
        current: Optional[str] = parent_id
        while current is not None and current not in seen:
            if current == project_id:
                raise ValidationError("Project hierarchy cannot contain cycles")
            seen.add(current)
            parent = session.get(Project, current)
            current = parent.parent_id if parent else None


__all__ = ["ProjectService"]
