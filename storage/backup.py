"""Dated snapshots of the store with simple day-based rotation."""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from pathlib import Path

from sqlalchemy.engine import Engine

from storage.db import run_outside_transaction

logger = logging.getLogger("taskhold.engine")


def backup_path(db_file: Path, backup_dir: Path, day: date) -> Path:
    return backup_dir / f"{db_file.stem}_{day.isoformat()}{db_file.suffix}"


def _snapshot_day(path: Path, prefix: str) -> date | None:
    stem = path.stem
    if not stem.startswith(prefix):
        return None
    try:
        return datetime.strptime(stem[len(prefix) :], "%Y-%m-%d").date()
    except ValueError:
        return None


def rotate_backups(db_file: Path, backup_dir: Path, today: date, keep_days: int) -> list[Path]:
    """Delete snapshots older than ``keep_days`` days (today included); return them."""

    if keep_days <= 0:
        return []
    cutoff = today - timedelta(days=keep_days - 1)
    prefix = f"{db_file.stem}_"
    removed: list[Path] = []
    for file in sorted(backup_dir.glob(f"{prefix}*{db_file.suffix}")):
        day = _snapshot_day(file, prefix)
        if day is None or day >= cutoff:
            continue
        try:
            file.unlink()
        except OSError as exc:
            logger.warning("Could not remove old backup %s: %s", file, exc)
            continue
        removed.append(file)
    return removed


def ensure_daily_backup(
    engine: Engine,
    db_path: str | Path,
    backup_dir: str | Path,
    *,
    keep_days: int = 7,
) -> Path | None:
    """Write today's snapshot unless it exists, then rotate; return the new file.

    ``VACUUM INTO`` is used instead of copying the file so that pages still
    held in the WAL end up in the snapshot.
    """

    db_file = Path(db_path)
    if not db_file.exists():
        return None

    backups = Path(backup_dir)
    backups.mkdir(parents=True, exist_ok=True)

    today = datetime.now().date()
    destination = backup_path(db_file, backups, today)

    created: Path | None = None
    if not destination.exists():
        run_outside_transaction(engine, "VACUUM INTO ?", (str(destination),))
        created = destination

    for file in rotate_backups(db_file, backups, today, keep_days):
        logger.info("Removed backup %s", file.name)
    return created


__all__ = ["backup_path", "ensure_daily_backup", "rotate_backups"]
