"""
Task query engine.

Turns an owner id plus a ``TaskQuery`` (filters, sort, pagination) into
one page of tasks and the total size of the filtered set, and computes the
per-user statistics shown on the dashboard.  Nothing here writes to the
store.

Sorting by priority or status uses fixed ordinal ranks (low < medium <
high; todo < in-progress < completed) expressed as SQL ``CASE``
expressions, never the alphabetical order of the stored strings.  The
task id is always appended as a tie-breaker so paging through equal keys
is stable.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import case, func, or_

from .models import PRIORITY_RANK, STATUS_RANK, Task, TaskPriority, TaskStatus
from .store import TaskStore

SORT_FIELDS = ("title", "priority", "status", "createdAt", "updatedAt")
SORT_ORDERS = ("asc", "desc")


@dataclass(frozen=True)
class TaskQuery:
    """Validated listing parameters for ``GET /tasks``."""

    page: int = 1
    limit: int = 10
    search: str | None = None
    priority: str | None = None
    status: str | None = None
    sort_by: str = "createdAt"
    sort_order: str = "desc"
    include_archived: bool = False

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class TaskPage:
    tasks: list[Task] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> dict[str, int]:
        return {"page": self.page, "limit": self.limit, "pages": self.pages}


def _sort_expression(sort_by: str):
    if sort_by == "priority":
        return case(PRIORITY_RANK, value=Task.priority, else_=0)
    if sort_by == "status":
        return case(STATUS_RANK, value=Task.status, else_=0)
    if sort_by == "title":
        return Task.title
    if sort_by == "updatedAt":
        return Task.updated_at
    return Task.created_at


def build_criteria(owner_id: int, query: TaskQuery) -> list[Any]:
    """Return the ``WHERE`` clauses for *query*, always scoped to *owner_id*."""
    criteria: list[Any] = [TaskStore.owned_by(owner_id)]
    if not query.include_archived:
        criteria.append(Task.is_archived.is_(False))
    if query.search:
        term = query.search.lower()
        criteria.append(
            or_(
                func.lower(Task.title).contains(term, autoescape=True),
                func.lower(Task.description).contains(term, autoescape=True),
            )
        )
    if query.priority:
        criteria.append(Task.priority == query.priority)
    if query.status:
        criteria.append(Task.status == query.status)
    return criteria


def build_ordering(query: TaskQuery) -> list[Any]:
    expression = _sort_expression(query.sort_by)
    if query.sort_order == "asc":
        return [expression.asc(), Task.id.asc()]
    return [expression.desc(), Task.id.desc()]


def list_tasks(owner_id: int, query: TaskQuery, store: TaskStore | None = None) -> TaskPage:
    """
    Fetch one page of *owner_id*'s tasks matching *query*.

    ``total`` is the size of the filtered set before pagination, so callers
    can compute the page count.
    """
    store = store or TaskStore()
    criteria = build_criteria(owner_id, query)
    tasks = store.find(
        *criteria,
        order_by=build_ordering(query),
        offset=query.offset,
        limit=query.limit,
    )
    total = store.count(*criteria)
    return TaskPage(tasks=tasks, total=total, page=query.page, limit=query.limit)


def _count_where(condition) -> Any:
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


def task_stats(
    owner_id: int,
    store: TaskStore | None = None,
    now: datetime | None = None,
) -> dict[str, int]:
    """
    Aggregate statistics over *owner_id*'s non-archived tasks.

    A task is overdue only when it has a due date, that date is in the
    past, and it is not completed.
    """
    store = store or TaskStore()
    now = now or datetime.now(timezone.utc)
    completed = TaskStatus.COMPLETED.value
    row = store.aggregate(
        func.count(Task.id),
        _count_where(Task.status == completed),
        _count_where(Task.status == TaskStatus.IN_PROGRESS.value),
        _count_where(Task.status == TaskStatus.TODO.value),
        _count_where(Task.priority == TaskPriority.HIGH.value),
        _count_where(
            Task.due_date.is_not(None) & (Task.due_date < now) & (Task.status != completed)
        ),
        criteria=[TaskStore.owned_by(owner_id), Task.is_archived.is_(False)],
    )
    total, done, in_progress, todo, high, overdue = (int(value or 0) for value in row)
    return {
        "total": total,
        "completed": done,
        "inProgress": in_progress,
        "todo": todo,
        "highPriority": high,
        "overdue": overdue,
    }
