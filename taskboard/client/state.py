"""
Client-side state for Taskboard consumers.

Two layers live here:

* Pure functions (``filter_tasks``, ``sort_tasks``, ``derive_view``,
  ``summarize_tasks``) that apply the server's filtering, ordering and
  statistics rules to an in-memory list of task dicts as returned by the
  API.  They never mutate their input.
* ``ClientState``, a small container holding the session and the task
  list.  Each operation calls the API and reconciles the response into
  ``tasks``: created tasks are appended, updated tasks replaced by id and
  deleted tasks removed by id.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from .api import ApiClientError, TaskboardClient

PRIORITY_ORDER = {"low": 1, "medium": 2, "high": 3}
STATUS_ORDER = {"todo": 1, "in-progress": 2, "completed": 3}
SORT_FIELDS = ("title", "priority", "status", "createdAt", "updatedAt")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class FilterOptions:
    search: str = ""
    priority: str | None = None
    status: str | None = None
    sort_by: str = "createdAt"
    sort_order: str = "desc"
    include_archived: bool = False


def _parse_instant(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def filter_tasks(tasks: Iterable[dict[str, Any]], options: FilterOptions) -> list[dict[str, Any]]:
    """Keep tasks matching the search text, priority, status and archive flag."""
    needle = (options.search or "").strip().lower()
    result = []
    for task in tasks:
        if not options.include_archived and task.get("isArchived"):
            continue
        if options.priority and task.get("priority") != options.priority:
            continue
        if options.status and task.get("status") != options.status:
            continue
        if needle:
            haystacks = (task.get("title") or "", task.get("description") or "")
            if not any(needle in text.lower() for text in haystacks):
                continue
        result.append(task)
    return result


def _sort_key(sort_by: str):
    if sort_by == "priority":
        return lambda t: PRIORITY_ORDER.get(t.get("priority"), 0)
    if sort_by == "status":
        return lambda t: STATUS_ORDER.get(t.get("status"), 0)
    if sort_by == "title":
        return lambda t: t.get("title") or ""
    return lambda t: _parse_instant(t.get(sort_by)) or _EPOCH


def sort_tasks(
    tasks: Iterable[dict[str, Any]],
    sort_by: str = "createdAt",
    sort_order: str = "desc",
) -> list[dict[str, Any]]:
    """
    Order tasks the way ``GET /tasks`` does.

    Priority and status sort by rank (low < medium < high, todo <
    in-progress < completed), not alphabetically.  Ties are broken by id in
    the same direction so the order is total.

    Raises:
        ValueError: *sort_by* or *sort_order* is not recognised.
    """
    if sort_by not in SORT_FIELDS:
        raise ValueError(f"Unsupported sort field: {sort_by}")
    if sort_order not in ("asc", "desc"):
        raise ValueError(f"Unsupported sort order: {sort_order}")
    key = _sort_key(sort_by)
    return sorted(
        tasks,
        key=lambda t: (key(t), t.get("id") or 0),
        reverse=sort_order == "desc",
    )


def derive_view(tasks: Iterable[dict[str, Any]], options: FilterOptions) -> list[dict[str, Any]]:
    return sort_tasks(filter_tasks(tasks, options), options.sort_by, options.sort_order)


def _is_overdue(task: dict[str, Any], now: datetime) -> bool:
    due = _parse_instant(task.get("dueDate"))
    return due is not None and due < now and task.get("status") != "completed"


def summarize_tasks(tasks: Iterable[dict[str, Any]], now: datetime | None = None) -> dict[str, int]:
    """Counts matching ``GET /tasks/stats``, computed over non-archived tasks."""
    now = now or datetime.now(timezone.utc)
    active = [t for t in tasks if not t.get("isArchived")]
    return {
        "total": len(active),
        "completed": sum(1 for t in active if t.get("status") == "completed"),
        "inProgress": sum(1 for t in active if t.get("status") == "in-progress"),
        "todo": sum(1 for t in active if t.get("status") == "todo"),
        "highPriority": sum(1 for t in active if t.get("priority") == "high"),
        "overdue": sum(1 for t in active if _is_overdue(t, now)),
    }


@dataclass
class ClientState:
    """
    Session and task list for one API consumer.

    API failures are stored in ``error`` and re-raised; ``loading`` is true
    only while a call is in flight.
    """

    api: TaskboardClient
    user: dict[str, Any] | None = None
    token: str | None = None
    refresh_token: str | None = None
    tasks: list[dict[str, Any]] = field(default_factory=list)
    filters: FilterOptions = field(default_factory=FilterOptions)
    total: int = 0
    pagination: dict[str, int] = field(default_factory=dict)
    loading: bool = False
    error: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None and self.user is not None

    @property
    def visible_tasks(self) -> list[dict[str, Any]]:
        return derive_view(self.tasks, self.filters)

    @property
    def stats(self) -> dict[str, int]:
        return summarize_tasks(self.tasks)

    @contextmanager
    def _call(self) -> Iterator[None]:
        self.loading = True
        self.error = None
        try:
            yield
        except ApiClientError as exc:
            self.error = exc.message
            raise
        finally:
            self.loading = False

    def _open_session(self, session: dict[str, Any]) -> None:
        self.user = session["user"]
        self.token = session["token"]
        self.refresh_token = session.get("refreshToken")
        self.api.token = self.token

    def _clear_session(self) -> None:
        self.user = None
        self.token = None
        self.refresh_token = None
        self.tasks = []
        self.total = 0
        self.pagination = {}
        self.api.token = None

    # -- session -------------------------------------------------------

    def login(self, email: str, password: str) -> dict[str, Any]:
        with self._call():
            self._open_session(self.api.login(email, password))
        return self.user

    def register(self, username: str, email: str, password: str) -> dict[str, Any]:
        with self._call():
            self._open_session(self.api.register(username, email, password))
        return self.user

    def restore(self, token: str) -> dict[str, Any]:
        """Resume a session from a stored token; a rejected token clears it."""
        self.api.token = token
        try:
            with self._call():
                self.user = self.api.me()
        except ApiClientError:
            self._clear_session()
            raise
        self.token = token
        return self.user

    def logout(self) -> None:
        """Revoke the session server-side; local state is cleared even on failure."""
        try:
            with self._call():
                self.api.logout(self.refresh_token)
        finally:
            self._clear_session()

    # -- tasks ---------------------------------------------------------

    def load_tasks(self, limit: int = 100) -> list[dict[str, Any]]:
        """Fetch every page of the caller's tasks, *limit* at a time."""
        params: dict[str, Any] = {"limit": limit}
        if self.filters.include_archived:
            params["includeArchived"] = "true"
        tasks: list[dict[str, Any]] = []
        page = 1
        with self._call():
            while True:
                payload = self.api.list_tasks(page=page, **params)
                tasks.extend(payload["data"])
                pagination = payload.get("pagination", {})
                if not payload["data"] or page >= pagination.get("pages", page):
                    break
                page += 1
        self.tasks = tasks
        self.total = payload.get("total", len(tasks))
        self.pagination = pagination
        return self.tasks

    def _replace(self, updated: dict[str, Any]) -> None:
        self.tasks = [updated if t.get("id") == updated["id"] else t for t in self.tasks]

    def create_task(self, data: dict[str, Any]) -> dict[str, Any]:
        with self._call():
            task = self.api.create_task(data)
        self.tasks = [*self.tasks, task]
        return task

    def update_task(self, task_id: int, changes: dict[str, Any]) -> dict[str, Any]:
        with self._call():
            task = self.api.update_task(task_id, changes)
        self._replace(task)
        return task

    def delete_task(self, task_id: int) -> None:
        with self._call():
            self.api.delete_task(task_id)
        self.tasks = [t for t in self.tasks if t.get("id") != task_id]

    def toggle_archive(self, task_id: int) -> dict[str, Any]:
        with self._call():
            task = self.api.toggle_archive(task_id)
        self._replace(task)
        return task

    def bulk_update(self, task_ids: list[int], updates: dict[str, Any]) -> int:
        """Apply *updates* server-side, then reload so derived fields stay accurate."""
        with self._call():
            modified = self.api.bulk_update(task_ids, updates)
        if modified:
            self.load_tasks()
        return modified

    def set_filters(self, **changes: Any) -> FilterOptions:
        """
        Replace individual filter fields, e.g. ``set_filters(status="todo")``.

        Raises:
            ValueError: An unknown sort field or order is given.
        """
        filters = replace(self.filters, **changes)
        if filters.sort_by not in SORT_FIELDS or filters.sort_order not in ("asc", "desc"):
            raise ValueError("Invalid sort options")
        self.filters = filters
        return filters
