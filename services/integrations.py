"""External-service sync state kept alongside local records.

Every task, project and label carries an ``integrations`` JSON object keyed
by provider name. ``WrapperSync`` writes one provider key at a time with
SQLite's ``json_set`` inside a single UPDATE, so two writers touching
different providers never lose each other's data. ``IntegrationRegistry``
manages the per-provider configuration rows.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy import func, update
from sqlmodel import Session, select

from core.errors import NotFound, ValidationError
from core.vocabulary import provider_path, validate_provider
from models import Integration, Label, Project, Task
from models.records import IntegrationRecord, TaskRecord
from services.query_builder import compile_task_query
from storage.mapper import (
    INTEGRATION_FIELDS,
    decode_integrations,
    encode_json,
    integration_from_row,
    model_row,
    task_from_row,
    to_row,
)
from utils.datetime_utils import utc_now

_ENTITIES: Dict[str, tuple] = {
    "task": (Task.__table__, "Task not found"),
    "project": (Project.__table__, "Project not found"),
    "label": (Label.__table__, "Label not found"),
}


class WrapperSync:
    """Read and merge per-provider entries of the ``integrations`` column."""

    def __init__(self, session_factory: Callable[[], Session], *, clock: Callable[[], datetime] = utc_now):
        self._session_factory = session_factory
        self._clock = clock

    @staticmethod
    def _target(entity: str) -> tuple:
        try:
            return _ENTITIES[entity]
        except KeyError:
            raise ValidationError(f"Entity {entity!r} has no integrations column") from None

    def merge(self, entity: str, record_id: str, provider: str, payload: Any) -> int:
        """Set ``integrations.<provider>`` to ``payload`` leaving other providers intact."""

        table, missing = self._target(entity)
        path = provider_path(provider)
        if payload is None:
            raise ValidationError("Integration payload must not be null; use remove instead")
        encoded = encode_json(payload)
        blob = func.coalesce(func.nullif(table.c.integrations, ""), "{}")
        stmt = (
            update(table)
            .where(table.c.id == record_id)
            .values(
                integrations=func.json_set(blob, path, func.json(encoded)),
                updated_at=self._clock(),
            )
        )
        return self._execute_update(stmt, missing)

    def remove(self, entity: str, record_id: str, provider: str) -> int:
        table, missing = self._target(entity)
        path = provider_path(provider)
        blob = func.coalesce(func.nullif(table.c.integrations, ""), "{}")
        stmt = (
            update(table)
            .where(table.c.id == record_id)
            .values(integrations=func.json_remove(blob, path), updated_at=self._clock())
        )
        return self._execute_update(stmt, missing)

    def get(self, entity: str, record_id: str, provider: Optional[str] = None) -> Any:
        """Return one provider entry, or the whole mapping when ``provider`` is None."""

        table, missing = self._target(entity)
        if provider is not None:
            validate_provider(provider)
        with self._session_factory() as session:
            row = session.connection().execute(
                select(table.c.integrations).where(table.c.id == record_id)
            ).first()
        if row is None:
            raise NotFound(missing)
        data = decode_integrations(row[0]) or {}
        if provider is None:
            return data
        return data.get(provider)

    def tasks_by_integration(self, provider: str) -> List[TaskRecord]:
        query = compile_task_query({"has_integration": provider})
        with self._session_factory() as session:
            rows = session.exec(query.statement).mappings().all()
            return [task_from_row(row) for row in rows]

    def _execute_update(self, stmt, missing: str) -> int:
        with self._session_factory() as session:
            result = session.connection().execute(stmt)
            if result.rowcount == 0:
                session.rollback()
                raise NotFound(missing)
            session.commit()
            return result.rowcount


class IntegrationRegistry:
    """One configuration row per provider (``integration_<provider>``)."""

    def __init__(self, session_factory: Callable[[], Session], *, clock: Callable[[], datetime] = utc_now):
        self._session_factory = session_factory
        self._clock = clock

    def upsert(self, name: str, fields: Mapping[str, Any]) -> IntegrationRecord:
        validate_provider(name)
        row = to_row(fields, INTEGRATION_FIELDS, "integration")
        with self._session_factory() as session:
            integration = session.get(Integration, f"integration_{name}")
            if integration is None:
                integration = Integration(id=f"integration_{name}", name=name, created_at=self._clock())
            for key, value in row.items():
                setattr(integration, key, value)
            session.add(integration)
            session.commit()
        return self.get(name)

    def get(self, name: str) -> IntegrationRecord:
        validate_provider(name)
        with self._session_factory() as session:
            integration = session.get(Integration, f"integration_{name}")
            if integration is None:
                raise NotFound(f"Integration {name} is not configured")
            return integration_from_row(model_row(integration))

    def list(self) -> List[IntegrationRecord]:
        with self._session_factory() as session:
            rows = session.exec(select(Integration).order_by(Integration.name.asc())).all()
            return [integration_from_row(model_row(row)) for row in rows]

    def mark_synced(self, name: str, sync_token: Optional[str] = None) -> IntegrationRecord:
        validate_provider(name)
        with self._session_factory() as session:
            integration = session.get(Integration, f"integration_{name}")
            if integration is None:
                raise NotFound(f"Integration {name} is not configured")
            integration.last_sync_at = self._clock()
            if sync_token is not None:
                integration.sync_token = sync_token
            session.add(integration)
            session.commit()
        return self.get(name)


__all__ = ["IntegrationRegistry", "WrapperSync"]
