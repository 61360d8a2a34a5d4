"""Logger setup for the storage engine."""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from core.settings import LOGGING

LOGGER_NAME = "taskhold.engine"


def ensure_logger(log_path: Optional[Path] = None) -> logging.Logger:
    """Return the engine logger, attaching a rotating file handler once."""

    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        target = Path(log_path or LOGGING.path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            handler: logging.Handler = RotatingFileHandler(
                target,
                maxBytes=LOGGING.max_bytes,
                backupCount=LOGGING.backup_count,
                encoding="utf-8",
            )
        except OSError:
            # Read-only profile: keep logging on stderr instead.
            handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(LOGGING.level)
    return logger


__all__ = ["LOGGER_NAME", "ensure_logger"]
