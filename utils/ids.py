"""Identifier generation for locally created records."""
from __future__ import annotations

import time
import uuid


def generate_id(prefix: str = "task_") -> str:
    """Return ``<prefix><epoch ms>_<random>``, sortable by creation time."""

    return f"{prefix}{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


__all__ = ["generate_id"]
