"""Compile filter objects into parameterized SQLAlchemy selects.

Each recognised filter key maps to exactly one clause rule in a static table;
values are always bound parameters. The only value that ends up inside an
expression string is the ``has_integration`` provider, which is checked
against the provider allow-list first.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from typing import Any, Callable, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union

from sqlalchemy import column, func, literal_column, select, table
from sqlalchemy.dialects import sqlite
from sqlalchemy.sql import ColumnElement, Select

from core.errors import ValidationError
from core.vocabulary import provider_path, validate_rating, validate_status
from models import Project, Task
from storage.mapper import as_bool
from utils.datetime_utils import coerce_date

tasks = Task.__table__
projects = Project.__table__
task_search = table("task_search", column("rowid"), column("rank"))


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass
class TaskFilters:
    """Recognised task filters; ``parent_id`` is tri-state (UNSET / None / id)."""

    status: Union[None, str, Sequence[str]] = None
    project_id: Optional[str] = None
    parent_id: Any = UNSET
    due_date_from: Optional[date] = None
    due_date_to: Optional[date] = None
    energy_level: Optional[int] = None
    context: Optional[str] = None
    focus_time: Optional[bool] = None
    has_integration: Optional[str] = None
    search: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "TaskFilters":
        """Build filters from a transport payload; a present ``parent_id: None`` means top level."""

        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError(f"Unknown task filter(s): {', '.join(unknown)}")
        if "due_date_from" in data:
            data["due_date_from"] = coerce_date(data["due_date_from"], "due_date_from")
        if "due_date_to" in data:
            data["due_date_to"] = coerce_date(data["due_date_to"], "due_date_to")
        return cls(**data)


@dataclass
class ProjectFilters:
    parent_id: Any = UNSET
    is_favorite: Optional[bool] = None
    is_archived: Optional[bool] = None
    has_integration: Optional[str] = None
    search: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ProjectFilters":
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError(f"Unknown project filter(s): {', '.join(unknown)}")
        return cls(**data)


class _Rule(NamedTuple):
    key: str
    build: Callable[[Any], ColumnElement]
    accepts_none: bool = False


@dataclass(frozen=True)
class CompiledQuery:
    """An executable statement and the values bound to it."""

    statement: Select

    def _compiled(self):
        return self.statement.compile(dialect=sqlite.dialect())

    @property
    def sql(self) -> str:
        return str(self._compiled())

    @property
    def params(self) -> List[Any]:
        compiled = self._compiled()
        values: List[Any] = []
        for name in compiled.positiontup or ():
            value = compiled.params[name]
            # IN lists are bound as one expanding parameter
            if isinstance(value, (list, tuple)):
                values.extend(value)
            else:
                values.append(value)
        return values


# ----- clause rules -----
def _status_clause(value: Union[str, Sequence[str]]) -> ColumnElement:
    if isinstance(value, str):
        return tasks.c.status == validate_status(value)
    statuses = [validate_status(item) for item in value]
    return tasks.c.status.in_(statuses)


def _parent_clause(table_, value: Optional[str]) -> ColumnElement:
    if value is None:
        return table_.c.parent_id.is_(None)
    return table_.c.parent_id == value


def _integration_clause(table_, provider: str) -> ColumnElement:
    return func.json_extract(table_.c.integrations, provider_path(provider)).is_not(None)


def _energy_clause(value: int) -> ColumnElement:
    return tasks.c.energy_level == validate_rating(value, "energy_level")


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _project_search_clause(term: str) -> ColumnElement:
    pattern = _like_pattern(term)
    return projects.c.name.like(pattern, escape="\\") | projects.c.description.like(pattern, escape="\\")


TASK_FILTER_RULES: Tuple[_Rule, ...] = (
    _Rule("status", _status_clause),
    _Rule("project_id", lambda v: tasks.c.project_id == v),
    _Rule("parent_id", lambda v: _parent_clause(tasks, v), accepts_none=True),
    _Rule("due_date_from", lambda v: tasks.c.due_date >= v),
    _Rule("due_date_to", lambda v: tasks.c.due_date <= v),
    _Rule("energy_level", _energy_clause),
    _Rule("context", lambda v: tasks.c.context == v),
    _Rule("focus_time", lambda v: tasks.c.focus_time == as_bool(v)),
    _Rule("has_integration", lambda v: _integration_clause(tasks, v)),
)

PROJECT_FILTER_RULES: Tuple[_Rule, ...] = (
    _Rule("parent_id", lambda v: _parent_clause(projects, v), accepts_none=True),
    _Rule("is_favorite", lambda v: projects.c.is_favorite == as_bool(v)),
    _Rule("is_archived", lambda v: projects.c.is_archived == as_bool(v)),
    _Rule("has_integration", lambda v: _integration_clause(projects, v)),
    _Rule("search", _project_search_clause),
)


def _where_clauses(filters: Any, rules: Sequence[_Rule]) -> List[ColumnElement]:
    clauses: List[ColumnElement] = []
    for rule in rules:
        value = getattr(filters, rule.key)
        if value is UNSET:
            continue
        if value is None and not rule.accepts_none:
            continue
        clauses.append(rule.build(value))
    return clauses


def _paginate(stmt: Select, limit: Optional[int], offset: Optional[int]) -> Select:
    if limit is not None:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise ValidationError(f"limit must be a positive integer, got {limit!r}")
        stmt = stmt.limit(limit)
    if offset is not None:
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            raise ValidationError(f"offset must be a non-negative integer, got {offset!r}")
        if offset:
            stmt = stmt.offset(offset)
    return stmt


def fts_query(term: str) -> str:
    """Quote each token so user punctuation is matched literally by FTS5."""

    tokens = [tok for tok in (term or "").split() if tok]
    if not tokens:
        raise ValidationError("Search term is empty")
    return " ".join('"' + tok.replace('"', '""') + '"' for tok in tokens)


def task_select() -> Select:
    """Tasks joined with their project's name and colour."""

    return select(
        tasks,
        projects.c.name.label("project_name"),
        projects.c.color.label("project_color"),
    ).select_from(tasks.outerjoin(projects, tasks.c.project_id == projects.c.id))


def compile_task_query(filters: Union[TaskFilters, Mapping[str, Any], None] = None) -> CompiledQuery:
    if not isinstance(filters, TaskFilters):
        filters = TaskFilters.from_mapping(filters)

    clauses = _where_clauses(filters, TASK_FILTER_RULES)

    if filters.search:
        source = task_search.join(tasks, literal_column("tasks.rowid") == task_search.c.rowid).outerjoin(
            projects, tasks.c.project_id == projects.c.id
        )
        stmt = (
            select(
                tasks,
                projects.c.name.label("project_name"),
                projects.c.color.label("project_color"),
                task_search.c.rank.label("rank"),
            )
            .select_from(source)
            .where(literal_column("task_search").match(fts_query(filters.search)))
            .where(*clauses)
            .order_by(task_search.c.rank)
        )
    else:
        stmt = (
            task_select()
            .where(*clauses)
            .order_by(
                tasks.c.priority.asc(),
                tasks.c.due_date.asc().nulls_last(),
                tasks.c.created_at.desc(),
            )
        )

    return CompiledQuery(_paginate(stmt, filters.limit, filters.offset))


def compile_project_query(filters: Union[ProjectFilters, Mapping[str, Any], None] = None) -> CompiledQuery:
    if not isinstance(filters, ProjectFilters):
        filters = ProjectFilters.from_mapping(filters)

    stmt = (
        select(projects)
        .where(*_where_clauses(filters, PROJECT_FILTER_RULES))
        .order_by(projects.c.sort_order.asc(), projects.c.name.asc())
    )
    return CompiledQuery(_paginate(stmt, filters.limit, filters.offset))


__all__ = [
    "CompiledQuery",
    "PROJECT_FILTER_RULES",
    "ProjectFilters",
    "TASK_FILTER_RULES",
    "TaskFilters",
    "UNSET",
    "compile_project_query",
    "compile_task_query",
    "fts_query",
    "task_select",
]
