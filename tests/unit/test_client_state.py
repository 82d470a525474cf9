"""
Unit tests for the client-side derived views and state reconciliation.

``filter_tasks``/``sort_tasks``/``summarize_tasks`` are pure, and
``ClientState`` is exercised against a stub API object so these tests need
neither a server nor a database.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone

import pytest

from taskboard.client import (
    ApiClientError,
    ClientState,
    FilterOptions,
    derive_view,
    filter_tasks,
    sort_tasks,
    summarize_tasks,
)

pytestmark = pytest.mark.unit

NOW = datetime(2030, 6, 1, tzinfo=timezone.utc)


def _task(task_id: int, **fields):
    task = {
        "id": task_id,
        "title": f"Task {task_id}",
        "description": "",
        "priority": "medium",
        "status": "todo",
        "dueDate": None,
        "isArchived": False,
        "createdAt": f"2030-01-{task_id:02d}T00:00:00+00:00",
        "updatedAt": f"2030-01-{task_id:02d}T00:00:00+00:00",
    }
    task.update(fields)
    return task


@pytest.fixture
def tasks():
    return [
        _task(1, title="Buy milk", priority="low", status="completed"),
        _task(2, title="Write report", description="Quarterly numbers", priority="high"),
        _task(3, title="Call plumber", priority="medium", status="in-progress",
              dueDate="2030-05-01T00:00:00+00:00"),
        _task(4, title="Old report", priority="high", isArchived=True),
    ]


class TestDerivedViews:
    def test_filter_searches_title_and_description(self, tasks):
        result = filter_tasks(tasks, FilterOptions(search="QUARTERLY"))

        assert [t["id"] for t in result] == [2]

    def test_filter_hides_archived_by_default(self, tasks):
        assert 4 not in {t["id"] for t in filter_tasks(tasks, FilterOptions())}
        assert 4 in {t["id"] for t in filter_tasks(tasks, FilterOptions(include_archived=True))}

    def test_none_search_matches_everything(self, tasks):
        assert len(filter_tasks(tasks, FilterOptions(search=None))) == 3

    def test_sort_by_priority_uses_rank(self, tasks):
        ordered = sort_tasks(tasks[:3], "priority", "asc")

        assert [t["priority"] for t in ordered] == ["low", "medium", "high"]

    def test_default_sort_is_newest_first(self, tasks):
        assert [t["id"] for t in sort_tasks(tasks)] == [4, 3, 2, 1]

    def test_sort_rejects_unknown_field(self, tasks):
        with pytest.raises(ValueError):
            sort_tasks(tasks, "dueDate")

    def test_derive_view_does_not_mutate_input(self, tasks):
        """Test that the pure functions leave the source list untouched."""
        # Arrange
        snapshot = copy.deepcopy(tasks)

        # Act
        derive_view(tasks, FilterOptions(search="report", sort_by="title", sort_order="asc"))

        # Assert
        assert tasks == snapshot

    def test_summary_matches_server_stats_rules(self, tasks):
        assert summarize_tasks(tasks, now=NOW) == {
            "total": 3,
            "completed": 1,
            "inProgress": 1,
            "todo": 1,
            "highPriority": 1,
            "overdue": 1,
        }


class StubApi:
    """Records calls and replays canned responses in place of TaskboardClient."""

    def __init__(self) -> None:
        self.token = None
        self.calls: list[str] = []
        self.fail_with: ApiClientError | None = None

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_with is not None:
            raise self.fail_with

    def login(self, email, password):
        self._record("login")
        return {"user": {"id": 1, "email": email}, "token": "tok", "refreshToken": "ref"}

    def logout(self, refresh_token=None):
        self._record("logout")

    def me(self):
        self._record("me")
        return {"id": 1}

    def list_tasks(self, **params):
        self._record("list_tasks")
        return {"data": [_task(1), _task(2)], "total": 2, "pagination": {"page": 1, "limit": 100, "pages": 1}}

    def create_task(self, data):
        self._record("create_task")
        return _task(3, **data)

    def update_task(self, task_id, changes):
        self._record("update_task")
        return _task(task_id, **changes)

    def delete_task(self, task_id):
        self._record("delete_task")

    def toggle_archive(self, task_id):
        self._record("toggle_archive")
        return _task(task_id, isArchived=True)

    def bulk_update(self, task_ids, updates):
        self._record("bulk_update")
        return len(task_ids)


@pytest.fixture
def state():
    return ClientState(api=StubApi())


class TestClientState:
    def test_login_stores_session_on_state_and_client(self, state):
        state.login("a@example.com", "Secret123")

        assert state.is_authenticated
        assert state.api.token == "tok"
        assert state.refresh_token == "ref"

    def test_task_operations_reconcile_local_list(self, state):
        """Test append on create, replace on update and remove on delete."""
        # Arrange
        state.load_tasks()

        # Act
        state.create_task({"title": "New"})
        state.update_task(1, {"title": "Renamed"})
        state.delete_task(2)

        # Assert
        assert [(t["id"], t["title"]) for t in state.tasks] == [(1, "Renamed"), (3, "New")]
        assert state.loading is False

    def test_archiving_hides_task_from_visible_view(self, state):
        state.load_tasks()

        state.toggle_archive(1)

        assert [t["id"] for t in state.visible_tasks] == [2]
        assert state.stats["total"] == 1

    def test_bulk_update_reloads_tasks(self, state):
        state.load_tasks()

        assert state.bulk_update([1, 2], {"status": "completed"}) == 2
        assert state.api.calls.count("list_tasks") == 2

    def test_api_error_is_recorded_and_reraised(self, state):
        state.api.fail_with = ApiClientError(404, "Task not found")

        with pytest.raises(ApiClientError):
            state.delete_task(99)

        assert state.error == "Task not found"
        assert state.loading is False

    def test_logout_clears_local_state_even_when_server_fails(self, state):
        state.login("a@example.com", "Secret123")
        state.api.fail_with = ApiClientError(None, "Service unavailable")

        with pytest.raises(ApiClientError):
            state.logout()

        assert state.token is None
        assert state.user is None
        assert state.api.token is None

    def test_rejected_restore_clears_session(self, state):
        state.api.fail_with = ApiClientError(401, "Invalid token")

        with pytest.raises(ApiClientError):
            state.restore("stale-token")

        assert state.token is None
        assert state.api.token is None

    def test_set_filters_validates_sort_options(self, state):
        state.set_filters(status="todo", sort_by="title")

        assert state.filters.status == "todo"
        with pytest.raises(ValueError):
            state.set_filters(sort_order="sideways")
