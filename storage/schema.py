"""Idempotent schema setup: tables, indexes, the search index and seed rows."""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.engine import Connection, Engine
from sqlmodel import SQLModel

from models import Label, Project
from utils.datetime_utils import utc_now

logger = logging.getLogger("taskhold.engine")

SEARCH_TRIGGERS = ("task_search_insert", "task_search_update", "task_search_delete")

SEARCH_TABLE_DDL = """
CREATE VIRTUAL TABLE IF NOT EXISTS task_search USING fts5(
    title, description, notes,
    content='tasks', content_rowid='rowid'
)
"""

# External-content FTS5 tables must be told the old values before a row
# changes, otherwise stale tokens stay searchable.
SEARCH_TRIGGER_DDL = (
    """
    CREATE TRIGGER IF NOT EXISTS task_search_insert AFTER INSERT ON tasks BEGIN
        INSERT INTO task_search(rowid, title, description, notes)
        VALUES (new.rowid, new.title, new.description, new.notes);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS task_search_update AFTER UPDATE ON tasks BEGIN
        INSERT INTO task_search(task_search, rowid, title, description, notes)
        VALUES ('delete', old.rowid, old.title, old.description, old.notes);
        INSERT INTO task_search(rowid, title, description, notes)
        VALUES (new.rowid, new.title, new.description, new.notes);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS task_search_delete AFTER DELETE ON tasks BEGIN
        INSERT INTO task_search(task_search, rowid, title, description, notes)
        VALUES ('delete', old.rowid, old.title, old.description, old.notes);
    END
    """,
)

EXPRESSION_INDEX_DDL = (
    """
    CREATE INDEX IF NOT EXISTS idx_tasks_todoist_id
    ON tasks(json_extract(source_task, '$.todoist.id'))
    WHERE json_extract(source_task, '$.todoist.id') IS NOT NULL
    """,
)

DEFAULT_PROJECTS = (
    {"id": "proj_inbox", "name": "Inbox", "description": "Default inbox for new tasks", "color": "#808080", "icon": "inbox"},
    {"id": "proj_work", "name": "Work", "description": "Work-related tasks", "color": "#3b82f6", "icon": "briefcase"},
    {"id": "proj_personal", "name": "Personal", "description": "Personal tasks and goals", "color": "#10b981", "icon": "user"},
)

DEFAULT_LABELS = (
    {"id": "label_urgent", "name": "urgent", "color": "#ef4444"},
    {"id": "label_important", "name": "important", "color": "#f59e0b"},
    {"id": "label_learning", "name": "learning", "color": "#3b82f6"},
    {"id": "label_review", "name": "review", "color": "#8b5cf6"},
)


def ensure_search_index(conn: Connection) -> None:
    conn.execute(text(SEARCH_TABLE_DDL))
    for ddl in SEARCH_TRIGGER_DDL:
        conn.execute(text(ddl))


def drop_search_triggers(conn: Connection) -> None:
    for name in SEARCH_TRIGGERS:
        conn.execute(text(f"DROP TRIGGER IF EXISTS {name}"))


def rebuild_search_index(conn: Connection) -> None:
    conn.execute(text("INSERT INTO task_search(task_search) VALUES ('rebuild')"))


def seed_defaults(conn: Connection) -> None:
    """Insert default projects and labels unless a row with the same key exists."""

    now = utc_now()
    project_rows = [
        {
            **row,
            "sort_order": 0,
            "is_favorite": False,
            "is_archived": False,
            "created_at": now,
            "updated_at": now,
        }
        for row in DEFAULT_PROJECTS
    ]
    label_rows = [
        {**row, "sort_order": 0, "created_at": now, "updated_at": now}
        for row in DEFAULT_LABELS
    ]
    conn.execute(insert(Project.__table__).values(project_rows).on_conflict_do_nothing())
    conn.execute(insert(Label.__table__).values(label_rows).on_conflict_do_nothing())


def ensure_schema(engine: Engine, *, seed: bool = True) -> None:
    """Create every table, index, trigger and seed row that is missing."""

    SQLModel.metadata.create_all(engine)
    with engine.begin() as conn:
        for ddl in EXPRESSION_INDEX_DDL:
            conn.execute(text(ddl))
        ensure_search_index(conn)
        if seed:
            seed_defaults(conn)
    logger.debug("Schema ensured for %s", engine.url)


def list_schema_objects(conn: Connection) -> list[tuple[str, str]]:
    """Return ``(type, name)`` pairs from ``sqlite_master``, sorted."""
    rows = conn.execute(
        text("SELECT type, name FROM sqlite_master WHERE name NOT LIKE 'sqlite_%' ORDER BY type, name")
    )
    return [(row[0], row[1]) for row in rows]


__all__ = [
    "DEFAULT_LABELS",
    "DEFAULT_PROJECTS",
    "SEARCH_TRIGGERS",
    "drop_search_triggers",
    "ensure_schema",
    "ensure_search_index",
    "list_schema_objects",
    "rebuild_search_index",
    "seed_defaults",
]
