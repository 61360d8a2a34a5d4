import logging
from datetime import date, datetime, timezone

import pytest

from core.errors import ValidationError
from core.priorities import is_high_priority, normalize_priority, priority_label
from storage.mapper import decode_json, project_from_row, task_from_row, task_to_row


def _row(**overrides):
    row = {
        "id": "task_1",
        "title": "t",
        "description": None,
        "project_id": None,
        "parent_id": None,
        "priority": 2,
        "status": "pending",
        "due_date": "2026-03-10",
        "due_time": "09:30",
        "estimated_duration": None,
        "actual_duration": None,
        "energy_level": 2,
        "context": "work",
        "focus_time": 1,
        "notes": None,
        "source_task": '{"todoist": {"id": "42"}}',
        "integrations": '{"todoist": {"synced": true}}',
        "created_at": "2026-03-10T08:00:00Z",
        "updated_at": datetime(2026, 3, 10, 8, 0),
        "completed_at": None,
    }
    row.update(overrides)
    return row


def test_task_from_row_decodes_flags_json_and_dates():
    record = task_from_row(_row())
    assert record.focus_time is True
    assert record.due_date == date(2026, 3, 10)
    assert record.source_task == {"todoist": {"id": "42"}}
    assert record.integrations == {"todoist": {"synced": True}}
    assert record.created_at == datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc)
    assert record.updated_at == record.created_at
    assert record.project_name is None


def test_broken_json_columns_read_as_empty(caplog):
    with caplog.at_level(logging.WARNING, logger="taskhold.engine"):
        record = task_from_row(_row(source_task="{not json", integrations="[1, 2]"))
    assert any("malformed" in message for message in caplog.messages)
    assert record.source_task is None
    assert record.integrations is None
    assert decode_json("") is None


def test_task_to_row_validates_and_encodes():
    row = task_to_row(
        {
            "title": "  spaced  ",
            "priority": "9",
            "due_date": "2026-03-10T12:00:00",
            "focus_time": "yes",
            "integrations": {"notion": {"page": 1}},
        }
    )
    assert row["title"] == "spaced"
    assert row["priority"] == 4
    assert row["due_date"] == date(2026, 3, 10)
    assert row["focus_time"] is True
    assert row["integrations"] == '{"notion": {"page": 1}}'


@pytest.mark.parametrize(
    "fields",
    [
        {"title": ""},
        {"due_time": "25:00"},
        {"due_date": "next week"},
        {"energy_level": 0},
        {"integrations": {"asana": {}}},
        {"integrations": ["todoist"]},
        {"estimated_duration": -5},
    ],
)
def test_task_to_row_rejects_bad_input(fields):
    with pytest.raises(ValidationError):
        task_to_row(fields)


def test_project_booleans_from_integers():
    record = project_from_row(
        {
            "id": "proj_x",
            "name": "X",
            "description": None,
            "color": "#808080",
            "icon": None,
            "parent_id": None,
            "sort_order": 0,
            "is_favorite": 0,
            "is_archived": 1,
            "integrations": None,
            "created_at": None,
            "updated_at": None,
        }
    )
    assert record.is_favorite is False
    assert record.is_archived is True
    assert record.integrations is None


def test_priority_helpers():
    assert normalize_priority(None) == 2
    assert normalize_priority(0) == 1
    assert normalize_priority("x") == 2
    assert priority_label(1) == "Urgent"
    assert priority_label(4, short=True) == "P4"
    assert is_high_priority(2)
    assert not is_high_priority(3)
    assert is_high_priority(None, threshold=2)
