from datetime import date
from pathlib import Path
import logging
import sys

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.settings import BackupSettings
from services.engine import TaskEngine

TODAY = date(2026, 3, 10)


@pytest.fixture()
def store(tmp_path):
    engine = TaskEngine(
        tmp_path / "store.db",
        backup=BackupSettings(enabled=False),
        today=lambda: TODAY,
        logger=logging.getLogger("taskhold.tests"),
    )
    yield engine
    engine.close()


@pytest.fixture()
def make_task(store):
    def factory(**fields):
        fields.setdefault("title", "Task")
        result = store.create_task(fields)
        assert result.success, result.error
        return result.data

    return factory
