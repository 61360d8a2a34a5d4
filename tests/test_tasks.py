from datetime import date


def _ids(result):
    assert result.success, result.error
    return [task.id for task in result.data]


def test_create_assigns_id_defaults_and_timestamps(store):
    result = store.create_task({"title": "Write report", "project_id": "proj_work"})
    assert result.success
    assert result.changes == 1
    task = result.data
    assert task.id.startswith("task_")
    assert task.priority == 2
    assert task.status == "pending"
    assert task.energy_level == 2
    assert task.context == "work"
    assert task.focus_time is False
    assert task.created_at is not None
    assert task.created_at == task.updated_at
    assert task.project_name == "Work"


def test_create_keeps_caller_id_and_rejects_bad_values(store):
    assert store.create_task({"id": "task_fixed", "title": "Mine"}).data.id == "task_fixed"

    missing_title = store.create_task({"description": "no title"})
    assert not missing_title.success
    assert missing_title.code == "ValidationError"

    bad_energy = store.create_task({"title": "x", "energy_level": 9})
    assert bad_energy.code == "ValidationError"

    bad_status = store.create_task({"title": "x", "status": "done"})
    assert bad_status.code == "ValidationError"

    unknown = store.create_task({"title": "x", "colour": "red"})
    assert unknown.code == "ValidationError"

    duplicate = store.create_task({"id": "task_fixed", "title": "again"})
    assert duplicate.code == "ConstraintViolation"


def test_update_refreshes_updated_at_and_stamps_completion(store, make_task):
    task = make_task(title="Ship it")

    done = store.update_task(task.id, {"status": "completed"}).data
    assert done.completed_at is not None
    assert done.updated_at >= task.updated_at

    reopened = store.update_task(task.id, {"status": "pending"}).data
    assert reopened.completed_at is None


def test_update_edge_cases(store, make_task):
    task = make_task()

    empty = store.update_task(task.id, {})
    assert not empty.success
    assert empty.code == "ValidationError"
    assert store.get_task_by_id(task.id).data.updated_at == task.updated_at

    missing = store.update_task("task_missing", {"title": "x"})
    assert missing.code == "NotFound"

    renamed = store.update_task(task.id, {"id": "task_other"})
    assert renamed.code == "ValidationError"


def test_parent_cycles_rejected(store, make_task):
    parent = make_task(title="parent")
    child = make_task(title="child", parent_id=parent.id)

    result = store.update_task(parent.id, {"parent_id": child.id})
    assert result.code == "ValidationError"


def test_get_and_delete(store, make_task):
    task = make_task()
    assert store.get_task_by_id(task.id).data.title == "Task"

    deleted = store.delete_task(task.id)
    assert deleted.success and deleted.changes == 1
    assert store.get_task_by_id(task.id).code == "NotFound"
    assert store.delete_task(task.id).code == "NotFound"


def test_status_union_and_top_level_filters(store, make_task):
    pending = make_task(title="a", status="pending")
    active = make_task(title="b", status="in_progress")
    make_task(title="c", status="completed")
    child = make_task(title="d", parent_id=pending.id)

    both = _ids(store.get_tasks({"status": ["pending", "in_progress"]}))
    assert set(both) == {pending.id, active.id, child.id}

    top_level = _ids(store.get_tasks({"parent_id": None}))
    assert child.id not in top_level
    assert pending.id in top_level

    children = _ids(store.get_tasks({"parent_id": pending.id}))
    assert children == [child.id]


def test_default_ordering(store, make_task):
    late = make_task(title="late", priority=1, due_date="2026-04-01")
    undated = make_task(title="undated", priority=1)
    early = make_task(title="early", priority=1, due_date="2026-03-01")
    low = make_task(title="low", priority=4, due_date="2026-01-01")

    assert _ids(store.get_tasks()) == [early.id, late.id, undated.id, low.id]


def test_date_range_inclusive_and_pagination(store, make_task):
    first = make_task(title="1", due_date="2026-03-01")
    last = make_task(title="2", due_date="2026-03-31")
    make_task(title="3", due_date="2026-04-01")

    in_march = _ids(store.get_tasks({"due_date_from": "2026-03-01", "due_date_to": "2026-03-31"}))
    assert in_march == [first.id, last.id]

    page = _ids(store.get_tasks({"limit": 1, "offset": 1}))
    assert len(page) == 1
    assert store.get_tasks({"limit": -1}).code == "ValidationError"


def test_search_index_follows_insert_update_delete(store, make_task):
    task = make_task(title="Refactor parser", description="tokenizer cleanup", notes="see ticket")

    assert _ids(store.search_tasks("parser")) == [task.id]
    assert _ids(store.search_tasks("ticket")) == [task.id]

    store.update_task(task.id, {"title": "Rewrite lexer"})
    assert _ids(store.search_tasks("parser")) == []
    assert _ids(store.search_tasks("lexer")) == [task.id]

    store.delete_task(task.id)
    assert _ids(store.search_tasks("lexer")) == []
    assert _ids(store.search_tasks("tokenizer")) == []


def test_search_combines_with_filters_and_survives_punctuation(store, make_task):
    wanted = make_task(title="deploy api", status="pending")
    make_task(title="deploy docs", status="completed")

    assert _ids(store.search_tasks('deploy "api')) == [wanted.id]
    assert _ids(store.get_tasks({"search": "deploy", "status": "pending"})) == [wanted.id]
    assert store.search_tasks("   ").code == "ValidationError"


def test_search_index_survives_vacuum(store, make_task):
    keep = make_task(title="alpha keep")
    gone = make_task(title="beta gone")
    store.delete_task(gone.id)

    assert store.vacuum().success
    assert store.analyze().success
    assert _ids(store.search_tasks("alpha")) == [keep.id]


def test_deleting_parent_with_children_fails(store, make_task):
    parent = make_task(title="parent")
    child = make_task(title="child", parent_id=parent.id)

    result = store.delete_task(parent.id)
    assert not result.success
    assert result.code == "ConstraintViolation"
    assert store.get_task_by_id(child.id).success

    project = store.create_project({"name": "Temp"}).data
    make_task(title="in project", project_id=project.id)
    assert store.delete_project(project.id).code == "ConstraintViolation"


def test_deleting_task_cascades_links_entries_and_enhancements(store, make_task):
    task = make_task()
    assert store.add_label_to_task(task.id, "label_urgent").changes == 1
    entry = store.create_time_entry(
        {"task_id": task.id, "start_time": "2026-03-10T09:00:00Z", "end_time": "2026-03-10T09:45:00Z"}
    ).data
    note = store.add_task_enhancement(task.id, "note", "remember").data

    assert store.delete_task(task.id).success

    with store.engine.connect() as conn:
        for table in ("task_labels", "time_entries", "task_enhancements"):
            count = conn.exec_driver_sql(f"SELECT COUNT(*) FROM {table}").scalar()
            assert count == 0, table
    assert entry.duration == 45
    assert note.sort_order == 0
    assert store.get_labels().success


def test_task_record_serialises_for_transport(store, make_task):
    task = make_task(title="x", due_date=date(2026, 3, 12), source_task={"todoist": {"id": "42"}})
    payload = store.get_task_by_id(task.id).to_dict()
    assert payload["success"] is True
    assert "error" not in payload
    assert payload["data"]["due_date"] == "2026-03-12"
    assert payload["data"]["source_task"] == {"todoist": {"id": "42"}}
    assert payload["data"]["created_at"].endswith("Z")


def test_flag_filters_read_string_booleans(store, make_task):
    deep = make_task(title="deep work", focus_time=True)
    shallow = make_task(title="inbox zero")

    assert _ids(store.get_tasks({"focus_time": "false"})) == [shallow.id]
    assert _ids(store.get_tasks({"focus_time": "true"})) == [deep.id]

    store.create_project({"name": "Shelved", "is_archived": True})
    archived = store.get_projects({"is_archived": "no"}).data
    assert "Shelved" not in [project.name for project in archived]
