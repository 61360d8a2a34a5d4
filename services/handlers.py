"""Channel table exposing engine operations to a UI transport.

Each handler receives the engine plus the positional arguments sent over the
channel and returns a plain ``dict`` envelope, ready to be serialised.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable

from core.errors import ValidationError
from services.engine import TaskEngine
from services.result import Result

Handler = Callable[..., Any]


def _assign_labels(engine: TaskEngine, task_id: str, label_ids: Iterable[str]) -> Result:
    changes = 0
    for label_id in label_ids or ():
        result = engine.add_label_to_task(task_id, label_id)
        if not result.success:
            return result
        changes += result.changes or 0
    return Result.ok(True, changes=changes)


def _remove_labels(engine: TaskEngine, task_id: str, label_ids: Iterable[str]) -> Result:
    changes = 0
    for label_id in label_ids or ():
        result = engine.remove_label_from_task(task_id, label_id)
        if not result.success:
            return result
        changes += result.changes or 0
    return Result.ok(True, changes=changes)


def _health(engine: TaskEngine) -> Dict[str, Any]:
    result = engine.health_check()
    if result.success:
        return {"success": True, **result.data}
    return {"success": False, "status": "error", "message": result.error}


HANDLERS: Dict[str, Handler] = {
    # tasks
    "db:createTask": lambda e, data: e.create_task(data),
    "db:getTaskById": lambda e, task_id: e.get_task_by_id(task_id),
    "db:getTasks": lambda e, filters=None: e.get_tasks(filters or {}),
    "db:updateTask": lambda e, task_id, updates: e.update_task(task_id, updates),
    "db:deleteTask": lambda e, task_id: e.delete_task(task_id),
    # projects
    "db:createProject": lambda e, data: e.create_project(data),
    "db:getProjectById": lambda e, project_id: e.get_project_by_id(project_id),
    "db:getProjects": lambda e, filters=None: e.get_projects(filters or {}),
    "db:updateProject": lambda e, project_id, updates: e.update_project(project_id, updates),
    "db:deleteProject": lambda e, project_id: e.delete_project(project_id),
    # labels
    "db:createLabel": lambda e, data: e.create_label(data),
    "db:getLabelById": lambda e, label_id: e.get_label_by_id(label_id),
    "db:getLabels": lambda e: e.get_labels(),
    "db:updateLabel": lambda e, label_id, updates: e.update_label(label_id, updates),
    "db:deleteLabel": lambda e, label_id: e.delete_label(label_id),
    "db:assignLabelsToTask": _assign_labels,
    "db:removeLabelsFromTask": _remove_labels,
    "db:getTaskLabels": lambda e, task_id: e.get_task_labels(task_id),
    # integrations
    "db:updateTaskIntegration": lambda e, task_id, provider, data: e.update_task_integration(
        task_id, provider, data
    ),
    "db:getTaskIntegration": lambda e, task_id, provider=None: e.get_task_integration(task_id, provider),
    "db:removeTaskIntegration": lambda e, task_id, provider: e.remove_task_integration(task_id, provider),
    "db:updateProjectIntegration": lambda e, project_id, provider, data: e.update_project_integration(
        project_id, provider, data
    ),
    "db:getTasksByIntegration": lambda e, provider: e.get_tasks_by_integration(provider),
    "db:upsertIntegration": lambda e, name, fields: e.upsert_integration(name, fields),
    "db:getIntegration": lambda e, name: e.get_integration(name),
    "db:getIntegrations": lambda e: e.get_integrations(),
    "db:markIntegrationSynced": lambda e, name, sync_token=None: e.mark_integration_synced(name, sync_token),
    # time tracking and enhancements
    "db:startTimeEntry": lambda e, task_id, description=None: e.start_time_entry(task_id, description),
    "db:stopTimeEntry": lambda e, entry_id, end_time=None: e.stop_time_entry(entry_id, end_time),
    "db:createTimeEntry": lambda e, data: e.create_time_entry(data),
    "db:getTimeEntries": lambda e, task_id: e.get_time_entries(task_id),
    "db:deleteTimeEntry": lambda e, entry_id: e.delete_time_entry(entry_id),
    "db:addTaskEnhancement": lambda e, task_id, kind, content: e.add_task_enhancement(task_id, kind, content),
    "db:getTaskEnhancements": lambda e, task_id: e.get_task_enhancements(task_id),
    "db:updateTaskEnhancement": lambda e, enhancement_id, updates: e.update_task_enhancement(
        enhancement_id, updates
    ),
    "db:deleteTaskEnhancement": lambda e, enhancement_id: e.delete_task_enhancement(enhancement_id),
    # search, statistics, maintenance
    "db:searchTasks": lambda e, term: e.search_tasks(term),
    "db:getTaskStatistics": lambda e: e.get_task_statistics(),
    "db:vacuum": lambda e: e.vacuum(),
    "db:analyze": lambda e: e.analyze(),
    "db:rebuildSearchIndex": lambda e: e.rebuild_search_index(),
    "db:backup": lambda e, directory=None: e.backup(directory),
    "db:healthCheck": _health,
    # convenience views
    "db:getTodayTasks": lambda e: e.get_today_tasks(),
    "db:getOverdueTasks": lambda e: e.get_overdue_tasks(),
    "db:getUpcomingTasks": lambda e, days=7: e.get_upcoming_tasks(days),
    "db:getTasksByProject": lambda e, project_id: e.get_tasks_by_project(project_id),
    "db:getTasksByContext": lambda e, context: e.get_tasks_by_context(context),
    "db:getCompletedTasks": lambda e, limit=50: e.get_completed_tasks(limit),
    "db:getHighPriorityTasks": lambda e: e.get_high_priority_tasks(),
    # bulk
    "db:bulkUpdateTasks": lambda e, updates: e.bulk_update_tasks(updates),
    "db:bulkDeleteTasks": lambda e, task_ids: e.bulk_delete_tasks(task_ids),
}


def dispatch(engine: TaskEngine, channel: str, *args: Any) -> Dict[str, Any]:
    """Run the handler registered for ``channel`` and return its envelope as a dict."""

    handler = HANDLERS.get(channel)
    if handler is None:
        return Result.failure(ValidationError(f"Unknown channel: {channel}")).to_dict()
    try:
        outcome = handler(engine, *args)
    except TypeError as exc:
        # Wrong number of arguments sent over the channel.
        engine.logger.info("%s: %s", channel, exc)
        return Result.failure(ValidationError(f"Invalid arguments for {channel}")).to_dict()
    if isinstance(outcome, dict):
        return outcome
    return outcome.to_dict()


__all__ = ["HANDLERS", "dispatch"]
