"""Engine facade: the single entry point callers use to reach the store.

``TaskEngine`` owns the SQLAlchemy engine, brings the schema up to date when
it is constructed and exposes every store operation as a method returning a
``Result`` envelope. Nothing raised below this layer escapes an operation;
only a failed migration aborts construction.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

from core.errors import ValidationError
from core.log import ensure_logger
from core.priorities import is_high_priority
from core.settings import BACKUP, DB_PATH, STORAGE, VIEWS, BackupSettings, StorageSettings
from core.vocabulary import OPEN_STATUSES
from services.enhancements import EnhancementService
from services.integrations import IntegrationRegistry, WrapperSync
from services.labels import LabelService
from services.projects import ProjectService
from services.query_builder import TaskFilters
from services.result import BulkResult, Result, enveloped
from services.statistics import StatisticsAggregator
from services.tasks import TaskService
from services.time_tracking import TimeTrackingService
from storage.backup import ensure_daily_backup
from storage.db import create_store_engine, run_outside_transaction, session_factory
from storage.migrations import MIGRATIONS, Migration, MigrationRunner
from storage import schema
from utils.datetime_utils import local_today, shift_days, utc_now


def _batch(items: Any, what: str) -> List[Any]:
    if items is None:
        return []
    if isinstance(items, (str, bytes, Mapping)) or not isinstance(items, Iterable):
        raise ValidationError(f"{what} must be a list")
    return list(items)


class TaskEngine:
    def __init__(
        self,
        db_path: Optional[str | Path] = None,
        *,
        storage: StorageSettings = STORAGE,
        backup: BackupSettings = BACKUP,
        clock: Callable[[], datetime] = utc_now,
        today: Callable[[], date] = local_today,
        logger: Optional[logging.Logger] = None,
        migrations: Sequence[Migration] = MIGRATIONS,
        seed: bool = True,
    ) -> None:
        self.db_path = Path(db_path or DB_PATH)
        self.logger = logger or ensure_logger(self.db_path.parent / "logs" / "engine.log")
        self._today = today
        self._backup = backup
        self.engine = create_store_engine(self.db_path, settings=storage)
        try:
            schema.ensure_schema(self.engine, seed=False)
            self.migrations = MigrationRunner(self.engine, migrations)
            applied = self.migrations.run()
            if seed:
                with self.engine.begin() as conn:
                    schema.seed_defaults(conn)
        except Exception:
            self.logger.error("Store initialisation failed for %s", self.db_path)
            self.engine.dispose()
            raise
        if applied:
            self.logger.info("Applied migrations %s", applied)
        self.logger.info(
            "Store ready at %s (schema version %s)", self.db_path, self.migrations.current_version()
        )

        factory = session_factory(self.engine)
        self.tasks = TaskService(factory, clock=clock)
        self.projects = ProjectService(factory, clock=clock)
        self.labels = LabelService(factory, clock=clock)
        self.time_entries = TimeTrackingService(factory, clock=clock)
        self.enhancements = EnhancementService(factory, clock=clock)
        self.wrappers = WrapperSync(factory, clock=clock)
        self.integrations = IntegrationRegistry(factory, clock=clock)
        self.statistics = StatisticsAggregator(factory, today=today)

        if backup.enabled:
            self._startup_backup()

    def __enter__(self) -> "TaskEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _backup_dir(self) -> Path:
        return Path(self._backup.directory or self.db_path.parent / "backups")

    def _startup_backup(self) -> None:
        try:
            created = ensure_daily_backup(
                self.engine, self.db_path, self._backup_dir(), keep_days=self._backup.keep_days
            )
        except Exception as exc:
            self.logger.warning("Daily backup failed: %s", exc)
            return
        if created:
            self.logger.info("Daily backup written to %s", created)

    # ----- tasks -----
    @enveloped("create_task")
    def create_task(self, data: Mapping[str, Any]) -> Result:
        return Result.ok(self.tasks.create(data), changes=1)

    @enveloped("get_task_by_id")
    def get_task_by_id(self, task_id: str):
        return self.tasks.get(task_id)

    @enveloped("get_tasks")
    def get_tasks(self, filters: Optional[Mapping[str, Any] | TaskFilters] = None):
        return self.tasks.list(filters)

    @enveloped("update_task")
    def update_task(self, task_id: str, updates: Mapping[str, Any]) -> Result:
        return Result.ok(self.tasks.update(task_id, updates), changes=1)

    @enveloped("delete_task")
    def delete_task(self, task_id: str) -> Result:
        return Result.ok(True, changes=self.tasks.delete(task_id))

    # ----- projects -----
    @enveloped("create_project")
    def create_project(self, data: Mapping[str, Any]) -> Result:
        return Result.ok(self.projects.create(data), changes=1)

    @enveloped("get_project_by_id")
    def get_project_by_id(self, project_id: str):
        return self.projects.get(project_id)

    @enveloped("get_projects")
    def get_projects(self, filters: Optional[Mapping[str, Any]] = None):
        return self.projects.list(filters)

    @enveloped("update_project")
    def update_project(self, project_id: str, updates: Mapping[str, Any]) -> Result:
        return Result.ok(self.projects.update(project_id, updates), changes=1)

    @enveloped("delete_project")
    def delete_project(self, project_id: str) -> Result:
        return Result.ok(True, changes=self.projects.delete(project_id))

    # ----- labels -----
    @enveloped("create_label")
    def create_label(self, data: Mapping[str, Any]) -> Result:
        return Result.ok(self.labels.create(data), changes=1)

    @enveloped("get_label_by_id")
    def get_label_by_id(self, label_id: str):
        return self.labels.get(label_id)

    @enveloped("get_labels")
    def get_labels(self):
        return self.labels.list()

    @enveloped("update_label")
    def update_label(self, label_id: str, updates: Mapping[str, Any]) -> Result:
        return Result.ok(self.labels.update(label_id, updates), changes=1)

    @enveloped("delete_label")
    def delete_label(self, label_id: str) -> Result:
        return Result.ok(True, changes=self.labels.delete(label_id))

    @enveloped("add_label_to_task")
    def add_label_to_task(self, task_id: str, label_id: str) -> Result:
        return Result.ok(True, changes=self.labels.add_to_task(task_id, label_id))

    @enveloped("remove_label_from_task")
    def remove_label_from_task(self, task_id: str, label_id: str) -> Result:
        return Result.ok(True, changes=self.labels.remove_from_task(task_id, label_id))

    @enveloped("get_task_labels")
    def get_task_labels(self, task_id: str):
        return self.labels.get_for_task(task_id)

    # ----- integrations -----
    @enveloped("update_task_integration")
    def update_task_integration(self, task_id: str, provider: str, payload: Any) -> Result:
        changes = self.wrappers.merge("task", task_id, provider, payload)
        return Result.ok(self.tasks.get(task_id), changes=changes)

    @enveloped("get_task_integration")
    def get_task_integration(self, task_id: str, provider: Optional[str] = None):
        return self.wrappers.get("task", task_id, provider)

    @enveloped("remove_task_integration")
    def remove_task_integration(self, task_id: str, provider: str) -> Result:
        changes = self.wrappers.remove("task", task_id, provider)
        return Result.ok(self.tasks.get(task_id), changes=changes)

    @enveloped("update_project_integration")
    def update_project_integration(self, project_id: str, provider: str, payload: Any) -> Result:
        changes = self.wrappers.merge("project", project_id, provider, payload)
        return Result.ok(self.projects.get(project_id), changes=changes)

    @enveloped("get_tasks_by_integration")
    def get_tasks_by_integration(self, provider: str):
        return self.wrappers.tasks_by_integration(provider)

    @enveloped("upsert_integration")
    def upsert_integration(self, name: str, fields: Mapping[str, Any]) -> Result:
        return Result.ok(self.integrations.upsert(name, fields), changes=1)

    @enveloped("get_integration")
    def get_integration(self, name: str):
        return self.integrations.get(name)

    @enveloped("get_integrations")
    def get_integrations(self):
        return self.integrations.list()

    @enveloped("mark_integration_synced")
    def mark_integration_synced(self, name: str, sync_token: Optional[str] = None) -> Result:
        return Result.ok(self.integrations.mark_synced(name, sync_token), changes=1)

    # ----- time tracking -----
    @enveloped("start_time_entry")
    def start_time_entry(self, task_id: str, description: Optional[str] = None) -> Result:
        return Result.ok(self.time_entries.start(task_id, description), changes=1)

    @enveloped("stop_time_entry")
    def stop_time_entry(self, entry_id: str, end_time: Any = None) -> Result:
        return Result.ok(self.time_entries.stop(entry_id, end_time), changes=1)

    @enveloped("create_time_entry")
    def create_time_entry(self, data: Mapping[str, Any]) -> Result:
        return Result.ok(self.time_entries.create(data), changes=1)

    @enveloped("get_time_entries")
    def get_time_entries(self, task_id: str):
        return self.time_entries.list_for_task(task_id)

    @enveloped("delete_time_entry")
    def delete_time_entry(self, entry_id: str) -> Result:
        return Result.ok(True, changes=self.time_entries.delete(entry_id))

    # ----- enhancements -----
    @enveloped("add_task_enhancement")
    def add_task_enhancement(self, task_id: str, kind: str, content: str, **extra: Any) -> Result:
        return Result.ok(self.enhancements.add(task_id, kind, content, **extra), changes=1)

    @enveloped("get_task_enhancements")
    def get_task_enhancements(self, task_id: str):
        return self.enhancements.list_for_task(task_id)

    @enveloped("update_task_enhancement")
    def update_task_enhancement(self, enhancement_id: str, updates: Mapping[str, Any]) -> Result:
        return Result.ok(self.enhancements.update(enhancement_id, updates), changes=1)

    @enveloped("delete_task_enhancement")
    def delete_task_enhancement(self, enhancement_id: str) -> Result:
        return Result.ok(True, changes=self.enhancements.delete(enhancement_id))

    # ----- search and statistics -----
    @enveloped("search_tasks")
    def search_tasks(self, term: str):
        return self.tasks.list({"search": term})

    @enveloped("get_task_statistics")
    def get_task_statistics(self, today: Optional[date] = None):
        return self.statistics.collect(today)

    # ----- convenience views -----
    @enveloped("get_today_tasks")
    def get_today_tasks(self):
        today = self._today()
        return self.tasks.list(
            {"due_date_from": today, "due_date_to": today, "status": list(OPEN_STATUSES)}
        )

    @enveloped("get_overdue_tasks")
    def get_overdue_tasks(self):
        # Due strictly before today; a task due today is not overdue yet.
        yesterday = shift_days(self._today(), -1)
        return self.tasks.list({"due_date_to": yesterday, "status": list(OPEN_STATUSES)})

    @enveloped("get_upcoming_tasks")
    def get_upcoming_tasks(self, days: int = VIEWS.upcoming_days):
        if isinstance(days, bool) or not isinstance(days, int) or days < 0:
            raise ValidationError(f"days must be a non-negative integer, got {days!r}")
        today = self._today()
        return self.tasks.list(
            {
                "due_date_from": today,
                "due_date_to": shift_days(today, days),
                "status": list(OPEN_STATUSES),
            }
        )

    @enveloped("get_tasks_by_project")
    def get_tasks_by_project(self, project_id: str):
        return self.tasks.list({"project_id": project_id})

    @enveloped("get_tasks_by_context")
    def get_tasks_by_context(self, context: str):
        return self.tasks.list({"context": context})

    @enveloped("get_completed_tasks")
    def get_completed_tasks(self, limit: int = VIEWS.completed_limit):
        return self.tasks.list({"status": "completed", "limit": limit})

    @enveloped("get_high_priority_tasks")
    def get_high_priority_tasks(self):
        open_tasks = self.tasks.list({"status": list(OPEN_STATUSES)})
        return [t for t in open_tasks if is_high_priority(t.priority, VIEWS.high_priority_max)]

    # ----- bulk -----
    def bulk_update_tasks(self, updates: Iterable[Mapping[str, Any]]) -> BulkResult:
        """Apply ``{"id", "data"}`` items one by one; failures do not stop the batch."""

        try:
            items = _batch(updates, "updates")
        except ValidationError as exc:
            self.logger.info("bulk_update_tasks: %s", exc)
            return BulkResult.failure(exc)
        outcome = BulkResult(success=True)
        for item in items:
            task_id = item.get("id") if isinstance(item, Mapping) else None
            result = self.update_task(task_id, item.get("data") if task_id else None)
            self._record(outcome, task_id, result)
        outcome.success = not outcome.errors
        return outcome

    def bulk_delete_tasks(self, task_ids: Iterable[str]) -> BulkResult:
        try:
            ids = _batch(task_ids, "task_ids")
        except ValidationError as exc:
            self.logger.info("bulk_delete_tasks: %s", exc)
            return BulkResult.failure(exc)
        outcome = BulkResult(success=True)
        for task_id in ids:
            self._record(outcome, task_id, self.delete_task(task_id))
        outcome.success = not outcome.errors
        return outcome

    @staticmethod
    def _record(outcome: BulkResult, item_id: Optional[str], result: Result) -> None:
        if result.success:
            outcome.processed += 1
        else:
            outcome.errors.append({"id": item_id, "error": result.error, "code": result.code})

    # ----- maintenance -----
    @enveloped("health_check")
    def health_check(self):
        self.projects.list({"limit": 1})
        return {
            "status": "healthy",
            "message": "Database is accessible and responding",
            "schema_version": self.migrations.current_version(),
        }

    @enveloped("vacuum")
    def vacuum(self):
        run_outside_transaction(self.engine, "VACUUM")
        # VACUUM may renumber the implicit rowids the search index points at.
        with self.engine.begin() as conn:
            schema.rebuild_search_index(conn)
        return True

    @enveloped("rebuild_search_index")
    def rebuild_search_index(self):
        with self.engine.begin() as conn:
            schema.rebuild_search_index(conn)
        return True

    @enveloped("analyze")
    def analyze(self):
        run_outside_transaction(self.engine, "ANALYZE")
        return True

    @enveloped("backup")
    def backup(self, directory: Optional[str | Path] = None):
        target = Path(directory) if directory else self._backup_dir()
        created = ensure_daily_backup(
            self.engine, self.db_path, target, keep_days=self._backup.keep_days
        )
        return {"created": created is not None, "path": str(created) if created else None, "directory": str(target)}

    @enveloped("close")
    def close(self):
        self.engine.dispose()
        self.logger.info("Store closed")
        return True


__all__ = ["TaskEngine"]
