"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``."""

    platform_id = (platform or sys.platform).lower()
    environ = dict(env or os.environ)
    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return (base.expanduser() / sanitized)


APP_NAME = "Taskhold"


DATA_DIR = get_default_data_dir(APP_NAME)
LOG_DIR = DATA_DIR / "logs"

DB_PATH = DATA_DIR / "taskhold.db"
LOG_PATH = LOG_DIR / "engine.log"


@dataclass(frozen=True)
class StorageSettings:
    """SQLite tuning applied to every connection; not exposed to callers."""

    journal_mode: str = "WAL"
    synchronous: str = "NORMAL"
    temp_store: str = "MEMORY"
    mmap_size: int = 1_073_741_824  # 1 GiB
    cache_size: int = -64_000  # negative means KiB, i.e. ~64 MB
    busy_timeout_ms: int = 5_000


STORAGE = StorageSettings()


@dataclass(frozen=True)
class LogSettings:
    path: Path = LOG_PATH
    max_bytes: int = 1_000_000
    backup_count: int = 3
    level: str = "INFO"


LOGGING = LogSettings()


@dataclass(frozen=True)
class BackupSettings:
    """Daily copies made at engine start; ``directory=None`` keeps them next to the store."""

    enabled: bool = True
    directory: Optional[Path] = None
    keep_days: int = 7


BACKUP = BackupSettings()


@dataclass(frozen=True)
class ViewSettings:
    upcoming_days: int = 7
    completed_limit: int = 50
    high_priority_max: int = 2


VIEWS = ViewSettings()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "LOG_DIR",
    "DB_PATH",
    "LOG_PATH",
    "STORAGE",
    "LOGGING",
    "BACKUP",
    "VIEWS",
    "BackupSettings",
    "LogSettings",
    "StorageSettings",
    "ViewSettings",
    "get_default_data_dir",
]
