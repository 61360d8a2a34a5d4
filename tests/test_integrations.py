import threading

import pytest

from services.integrations import WrapperSync
from storage.db import session_factory


def test_merge_keeps_other_providers(store, make_task):
    task = make_task(title="synced")

    first = store.update_task_integration(task.id, "todoist", {"id": "t-1", "synced": True})
    assert first.success and first.changes == 1
    second = store.update_task_integration(task.id, "msToDo", {"id": "m-9"})
    assert second.success

    assert second.data.integrations == {
        "todoist": {"id": "t-1", "synced": True},
        "msToDo": {"id": "m-9"},
    }
    assert second.data.updated_at >= task.updated_at


def test_merge_replaces_only_its_own_key(store, make_task):
    task = make_task()
    store.update_task_integration(task.id, "todoist", {"id": "old"})
    store.update_task_integration(task.id, "notion", {"page": "p"})
    store.update_task_integration(task.id, "todoist", {"id": "new"})

    assert store.get_task_integration(task.id, "todoist").data == {"id": "new"}
    assert store.get_task_integration(task.id, "notion").data == {"page": "p"}


def test_interleaved_writers_do_not_lose_keys(store, make_task):
    task = make_task()
    # Two independent handles on the same store, as two writers would have.
    other = WrapperSync(session_factory(store.engine))
    other.merge("task", task.id, "github", {"issue": 7})
    store.update_task_integration(task.id, "linear", {"issue": "LIN-1"})
    other.merge("task", task.id, "todoist", {"id": "x"})

    assert set(store.get_task_integration(task.id).data) == {"github", "linear", "todoist"}


def test_concurrent_merges_keep_every_provider(store, make_task):
    task = make_task()
    providers = ("todoist", "msToDo", "notion", "github", "linear")
    failures = []

    def writer(provider):
        sync = WrapperSync(session_factory(store.engine))
        for round_no in range(20):
            try:
                sync.merge("task", task.id, provider, {"round": round_no})
            except Exception as exc:  # collected for the assertion below
                failures.append((provider, exc))

    threads = [threading.Thread(target=writer, args=(name,)) for name in providers]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert failures == []
    merged = store.get_task_integration(task.id).data
    assert merged == {name: {"round": 19} for name in providers}


def test_merge_on_missing_record_is_not_found(store):
    result = store.update_task_integration("task_missing", "todoist", {"id": "1"})
    assert not result.success
    assert result.code == "NotFound"

    project = store.update_project_integration("proj_missing", "notion", {"id": "1"})
    assert project.code == "NotFound"


@pytest.mark.parametrize("provider", ["todoist.id", "$.x", "bad name", "asana", ""])
def test_unsafe_provider_names_rejected(store, make_task, provider):
    task = make_task()
    result = store.update_task_integration(task.id, provider, {"id": "1"})
    assert result.code == "ValidationError"
    assert store.get_task_by_id(task.id).data.integrations is None


def test_null_payload_rejected_and_remove_supported(store, make_task):
    task = make_task()
    assert store.update_task_integration(task.id, "todoist", None).code == "ValidationError"

    store.update_task_integration(task.id, "todoist", {"id": "1"})
    store.update_task_integration(task.id, "github", {"id": "2"})
    removed = store.remove_task_integration(task.id, "todoist")
    assert removed.success
    assert removed.data.integrations == {"github": {"id": "2"}}
    assert store.get_task_integration(task.id, "todoist").data is None


def test_tasks_by_integration(store, make_task):
    linked = make_task(title="linked")
    make_task(title="plain")
    store.update_task_integration(linked.id, "todoist", {"id": "1"})

    result = store.get_tasks_by_integration("todoist")
    assert [task.id for task in result.data] == [linked.id]
    assert store.get_tasks({"has_integration": "github"}).data == []
    assert store.get_tasks_by_integration("todoist.id").code == "ValidationError"


def test_project_and_label_wrappers(store):
    result = store.update_project_integration("proj_work", "notion", {"db": "abc"})
    assert result.success
    assert result.data.integrations == {"notion": {"db": "abc"}}

    store.wrappers.merge("label", "label_urgent", "todoist", {"id": 5})
    assert store.wrappers.get("label", "label_urgent", "todoist") == {"id": 5}

    projects = store.get_projects({"has_integration": "notion"}).data
    assert [p.id for p in projects] == ["proj_work"]


def test_integration_registry(store):
    assert store.get_integration("todoist").code == "NotFound"

    created = store.upsert_integration("todoist", {"is_active": True, "config": {"workspace": "me"}})
    assert created.success
    assert created.data.id == "integration_todoist"
    assert created.data.config == {"workspace": "me"}
    assert created.data.last_sync_at is None

    synced = store.mark_integration_synced("todoist", "token-1").data
    assert synced.last_sync_at is not None
    assert synced.sync_token == "token-1"

    assert [i.name for i in store.get_integrations().data] == ["todoist"]
    assert store.upsert_integration("asana", {}).code == "ValidationError"
