"""ORM models exposed by the Taskhold store."""
from .project import Project
from .task import Task
from .label import Label, TaskLabel
from .time_entry import TimeEntry
from .enhancement import TaskEnhancement
from .integration import Integration

__all__ = [
    "Integration",
    "Label",
    "Project",
    "Task",
    "TaskEnhancement",
    "TaskLabel",
    "TimeEntry",
]
