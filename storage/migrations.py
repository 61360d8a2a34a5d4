"""Versioned schema migrations gated by ``PRAGMA user_version``."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from core.errors import MigrationError
from storage.schema import drop_search_triggers, ensure_search_index, rebuild_search_index

logger = logging.getLogger("taskhold.engine")


@dataclass(frozen=True)
class Migration:
    version: int
    description: str
    apply: Callable[[Connection], None]


def _column_exists(conn, table: str, column: str) -> bool:
    result = conn.execute(text(f"PRAGMA table_info('{table}')"))
    return any(row[1] == column for row in result)


def get_schema_version(conn: Connection) -> int:
    value = conn.exec_driver_sql("PRAGMA user_version").scalar()
    return int(value or 0)


def set_schema_version(conn: Connection, version: int) -> None:
    # PRAGMA does not accept bound parameters; the value is always an int.
    conn.exec_driver_sql(f"PRAGMA user_version = {int(version)}")


def baseline(conn: Connection) -> None:
    # Tables, triggers and seeds come from storage.schema.ensure_schema.
    logger.info("Migration 1: initial schema")


def rebuild_search(conn: Connection) -> None:
    drop_search_triggers(conn)
    ensure_search_index(conn)
    rebuild_search_index(conn)


def ensure_late_columns(conn: Connection) -> None:
    columns = {
        ("labels", "updated_at"): "DATETIME",
        ("projects", "is_archived"): "BOOLEAN NOT NULL DEFAULT 0",
    }
    for (table, name), ddl_type in columns.items():
        if not _column_exists(conn, table, name):
            conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {ddl_type}"))
    conn.execute(
        text(
            """
            UPDATE labels
            SET updated_at = COALESCE(updated_at, created_at)
            WHERE updated_at IS NULL
            """
        )
    )


MIGRATIONS: Tuple[Migration, ...] = (
    Migration(1, "initial schema", baseline),
    Migration(2, "rebuild search triggers and index", rebuild_search),
    Migration(3, "labels.updated_at and projects.is_archived", ensure_late_columns),
)


class MigrationRunner:
    """Apply pending migrations in ascending order, one transaction each."""

    def __init__(self, engine: Engine, migrations: Sequence[Migration] = MIGRATIONS):
        self._engine = engine
        self._migrations = tuple(migrations)
        self._check_order(self._migrations)

    @staticmethod
    def _check_order(migrations: Iterable[Migration]) -> None:
        previous: Optional[int] = None
        for migration in migrations:
            if migration.version <= 0:
                raise ValueError(f"Migration versions must be positive, got {migration.version}")
            if previous is not None and migration.version <= previous:
                raise ValueError(
                    f"Migration versions must strictly increase ({previous} -> {migration.version})"
                )
            previous = migration.version

    @property
    def latest_version(self) -> int:
        return self._migrations[-1].version if self._migrations else 0

    def current_version(self) -> int:
        with self._engine.connect() as conn:
            return get_schema_version(conn)

    def pending(self) -> List[Migration]:
        current = self.current_version()
        return [m for m in self._migrations if m.version > current]

    def run(self) -> List[int]:
        """Apply every pending migration; return the versions applied."""

        applied: List[int] = []
        for migration in self.pending():
            logger.info("Running migration to version %s (%s)", migration.version, migration.description)
            try:
                with self._engine.begin() as conn:
                    migration.apply(conn)
                    set_schema_version(conn, migration.version)
            except Exception as exc:
                logger.error("Migration %s failed: %s", migration.version, exc)
                raise MigrationError(migration.version, str(exc)) from exc
            applied.append(migration.version)
        return applied


__all__ = [
    "MIGRATIONS",
    "Migration",
    "MigrationRunner",
    "get_schema_version",
    "set_schema_version",
]
