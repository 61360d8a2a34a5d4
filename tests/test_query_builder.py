from datetime import date

import pytest

from core.errors import ValidationError
from services.query_builder import (
    TaskFilters,
    compile_project_query,
    compile_task_query,
    fts_query,
)


def test_default_ordering_without_search():
    query = compile_task_query({})
    sql = query.sql
    assert "task_search" not in sql
    order = sql.split("ORDER BY", 1)[1]
    assert order.index("tasks.priority ASC") < order.index("tasks.due_date ASC NULLS LAST")
    assert order.index("NULLS LAST") < order.index("tasks.created_at DESC")
    assert query.params == []


def test_status_collection_becomes_membership():
    query = compile_task_query({"status": ["pending", "in_progress"]})
    assert "tasks.status IN" in query.sql
    assert query.params == ["pending", "in_progress"]


def test_single_status_and_invalid_status():
    query = compile_task_query({"status": "completed"})
    assert "tasks.status = ?" in query.sql
    assert query.params == ["completed"]
    with pytest.raises(ValidationError):
        compile_task_query({"status": "done"})


def test_values_are_bound_not_inlined():
    query = compile_task_query(
        {
            "project_id": "proj_work'; DROP TABLE tasks; --",
            "due_date_from": "2026-03-01",
            "due_date_to": date(2026, 3, 31),
            "context": "home",
            "energy_level": 3,
        }
    )
    assert "DROP TABLE" not in query.sql
    assert "proj_work'; DROP TABLE tasks; --" in query.params
    assert date(2026, 3, 1) in query.params
    assert date(2026, 3, 31) in query.params
    assert "tasks.due_date >= ?" in query.sql
    assert "tasks.due_date <= ?" in query.sql


def test_parent_id_is_tri_state():
    assert "WHERE" not in compile_task_query({}).sql
    top_level = compile_task_query({"parent_id": None})
    assert "tasks.parent_id IS NULL" in top_level.sql
    children = compile_task_query({"parent_id": "task_1"})
    assert "tasks.parent_id = ?" in children.sql
    assert children.params == ["task_1"]
    # a missing attribute on the dataclass also means "no constraint"
    assert "IS NULL" not in compile_task_query(TaskFilters()).sql


def test_unknown_filter_key_rejected():
    with pytest.raises(ValidationError):
        compile_task_query({"colour": "red"})


def test_has_integration_uses_json_path():
    query = compile_task_query({"has_integration": "todoist"})
    assert "json_extract(tasks.integrations, ?) IS NOT NULL" in query.sql
    assert query.params == ["$.todoist"]


@pytest.mark.parametrize("provider", ["todoist.id", "$", "x]", "to do", "asana", "'todoist'"])
def test_has_integration_rejects_unsafe_or_unknown(provider):
    with pytest.raises(ValidationError):
        compile_task_query({"has_integration": provider})


def test_search_joins_index_and_orders_by_rank():
    query = compile_task_query({"search": "fix bug", "status": "pending"})
    sql = query.sql
    assert "task_search MATCH ?" in sql
    assert "JOIN tasks ON tasks.rowid = task_search.rowid" in sql
    assert "rank" in sql.split("ORDER BY", 1)[1]
    assert "priority" not in sql.split("ORDER BY", 1)[1]
    assert '"fix" "bug"' in query.params
    assert "pending" in query.params


def test_fts_query_quotes_tokens():
    assert fts_query('say "hi"') == '"say" """hi"""'
    assert fts_query("a-b OR c*") == '"a-b" "OR" "c*"'
    with pytest.raises(ValidationError):
        fts_query("   ")


def test_pagination_validation():
    query = compile_task_query({"limit": 10, "offset": 20})
    assert "LIMIT ? OFFSET ?" in query.sql
    assert query.params[-2:] == [10, 20]
    with pytest.raises(ValidationError):
        compile_task_query({"limit": 0})
    with pytest.raises(ValidationError):
        compile_task_query({"offset": -1})


def test_project_search_escapes_wildcards():
    query = compile_project_query({"search": "50%_off"})
    assert "ESCAPE" in query.sql
    assert query.params[0] == "%50\\%\\_off%"
    ordered = compile_project_query({}).sql
    assert "ORDER BY projects.sort_order ASC, projects.name ASC" in ordered
