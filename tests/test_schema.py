import logging
import sqlite3

import pytest
from sqlalchemy import text

from core.errors import MigrationError
from core.settings import BackupSettings
from services.engine import TaskEngine
from storage.db import create_store_engine
from storage.migrations import MIGRATIONS, Migration, MigrationRunner, get_schema_version
from storage.schema import DEFAULT_LABELS, DEFAULT_PROJECTS, ensure_schema, list_schema_objects

NO_BACKUP = BackupSettings(enabled=False)
LOGGER = logging.getLogger("taskhold.tests")


def _open(path):
    return TaskEngine(path, backup=NO_BACKUP, logger=LOGGER)


def test_fresh_store_has_schema_triggers_and_version(store):
    with store.engine.connect() as conn:
        objects = set(list_schema_objects(conn))
        version = get_schema_version(conn)

    assert version == MIGRATIONS[-1].version
    for name in ("tasks", "projects", "labels", "task_labels", "time_entries", "task_enhancements", "integrations"):
        assert ("table", name) in objects
    assert ("table", "task_search") in objects
    for trigger in ("task_search_insert", "task_search_update", "task_search_delete"):
        assert ("trigger", trigger) in objects
    assert ("index", "idx_tasks_due_date") in objects
    assert ("index", "idx_tasks_todoist_id") in objects


def test_pragmas_applied_on_every_connection(store):
    with store.engine.connect() as conn:
        assert conn.exec_driver_sql("PRAGMA foreign_keys").scalar() == 1
        assert conn.exec_driver_sql("PRAGMA journal_mode").scalar().lower() == "wal"


def test_ensure_schema_is_idempotent(store):
    with store.engine.connect() as conn:
        before = list_schema_objects(conn)

    ensure_schema(store.engine)
    ensure_schema(store.engine)

    with store.engine.connect() as conn:
        after = list_schema_objects(conn)
    assert before == after


def test_default_projects_and_labels_seeded(store):
    projects = store.get_projects().data
    labels = store.get_labels().data

    assert {p.id for p in projects} == {row["id"] for row in DEFAULT_PROJECTS}
    assert {label.name for label in labels} == {row["name"] for row in DEFAULT_LABELS}


def test_seeds_do_not_overwrite_existing_rows(tmp_path):
    path = tmp_path / "store.db"
    engine = _open(path)
    assert engine.update_project("proj_inbox", {"name": "Mine"}).success
    engine.close()

    reopened = _open(path)
    try:
        assert reopened.get_project_by_id("proj_inbox").data.name == "Mine"
        assert len(reopened.get_projects().data) == len(DEFAULT_PROJECTS)
    finally:
        reopened.close()


def test_migration_runner_is_noop_when_current(store):
    runner = MigrationRunner(store.engine)
    assert runner.pending() == []
    assert runner.run() == []
    assert runner.current_version() == runner.latest_version


def test_migrations_must_strictly_increase(store):
    noop = lambda conn: None  # noqa: E731
    with pytest.raises(ValueError):
        MigrationRunner(store.engine, [Migration(2, "b", noop), Migration(1, "a", noop)])
    with pytest.raises(ValueError):
        MigrationRunner(store.engine, [Migration(1, "a", noop), Migration(1, "again", noop)])
    # gaps are allowed
    MigrationRunner(store.engine, [Migration(1, "a", noop), Migration(5, "e", noop)])


def test_failed_migration_rolls_back_schema_and_version(tmp_path):
    engine = create_store_engine(tmp_path / "store.db")
    ensure_schema(engine)
    MigrationRunner(engine).run()

    def broken(conn):
        conn.execute(text("CREATE TABLE half_done (id INTEGER PRIMARY KEY)"))
        raise RuntimeError("boom")

    runner = MigrationRunner(engine, MIGRATIONS + (Migration(99, "broken", broken),))
    with pytest.raises(MigrationError) as excinfo:
        runner.run()

    assert excinfo.value.version == 99
    assert runner.current_version() == MIGRATIONS[-1].version
    with engine.connect() as conn:
        assert ("table", "half_done") not in list_schema_objects(conn)
    engine.dispose()


def test_failed_migration_aborts_engine_start(tmp_path):
    def broken(conn):
        raise RuntimeError("boom")

    with pytest.raises(MigrationError):
        TaskEngine(
            tmp_path / "store.db",
            backup=NO_BACKUP,
            logger=LOGGER,
            migrations=MIGRATIONS + (Migration(4, "broken", broken),),
        )


def test_legacy_store_gains_late_columns(tmp_path):
    path = tmp_path / "legacy.db"
    conn = sqlite3.connect(path)
    conn.execute(
        """
        CREATE TABLE projects (
            id TEXT PRIMARY KEY, name TEXT NOT NULL, description TEXT,
            color TEXT NOT NULL DEFAULT '#808080', icon TEXT, parent_id TEXT,
            sort_order INTEGER NOT NULL DEFAULT 0, is_favorite BOOLEAN NOT NULL DEFAULT 0,
            integrations TEXT, created_at DATETIME NOT NULL, updated_at DATETIME NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE labels (
            id TEXT PRIMARY KEY, name TEXT NOT NULL UNIQUE, color TEXT NOT NULL DEFAULT '#808080',
            description TEXT, sort_order INTEGER NOT NULL DEFAULT 0, integrations TEXT,
            created_at DATETIME NOT NULL
        )
        """
    )
    conn.execute(
        "INSERT INTO labels (id, name, created_at) VALUES ('label_old', 'old', '2024-01-01 00:00:00.000000')"
    )
    conn.commit()
    conn.close()

    engine = _open(path)
    try:
        with engine.engine.connect() as c:
            label_columns = {row[1] for row in c.exec_driver_sql("PRAGMA table_info('labels')")}
            project_columns = {row[1] for row in c.exec_driver_sql("PRAGMA table_info('projects')")}
        assert "updated_at" in label_columns
        assert "is_archived" in project_columns

        old = [label for label in engine.get_labels().data if label.id == "label_old"][0]
        assert old.updated_at == old.created_at
        assert engine.get_project_by_id("proj_work").data.is_archived is False
    finally:
        engine.close()
