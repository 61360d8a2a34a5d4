# taskhold/storage/db.py
"""SQLAlchemy engine construction for the SQLite store."""
from __future__ import annotations

from pathlib import Path
from typing import Callable

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine

from core.settings import STORAGE, StorageSettings

# Ensure SQLModel metadata is populated
import models  # noqa: F401


def _apply_pragmas(dbapi_connection, settings: StorageSettings) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute(f"PRAGMA journal_mode = {settings.journal_mode}")
        cursor.execute(f"PRAGMA synchronous = {settings.synchronous}")
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.execute(f"PRAGMA temp_store = {settings.temp_store}")
        cursor.execute(f"PRAGMA mmap_size = {int(settings.mmap_size)}")
        cursor.execute(f"PRAGMA cache_size = {int(settings.cache_size)}")
        cursor.execute(f"PRAGMA busy_timeout = {int(settings.busy_timeout_ms)}")
    finally:
        cursor.close()


def create_store_engine(db_path: str | Path, *, settings: StorageSettings = STORAGE) -> Engine:
    """Return an engine bound to ``db_path`` with the store pragmas applied."""

    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{path.as_posix()}", echo=False)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Take transaction control away from pysqlite so that DDL inside a
        # migration is covered by the BEGIN emitted below.
        dbapi_connection.isolation_level = None
        _apply_pragmas(dbapi_connection, settings)

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def session_factory(engine: Engine) -> Callable[[], Session]:
    def factory() -> Session:
        return Session(engine)

    return factory


def run_outside_transaction(engine: Engine, statement: str, params: tuple = ()) -> None:
    """Execute a statement (VACUUM, ANALYZE, ...) that SQLite refuses inside BEGIN."""

    raw = engine.raw_connection()
    try:
        cursor = raw.cursor()
        try:
            cursor.execute(statement, params)
        finally:
            cursor.close()
    finally:
        raw.close()


__all__ = ["create_store_engine", "run_outside_transaction", "session_factory"]
