"""
Integration tests for ``TaskboardClient`` and ``ClientState`` against the
real application.

The Flask test client stands in for the network: ``FlaskSessionAdapter``
exposes the same ``request`` signature as ``requests.Session`` so the HTTP
client runs unmodified.
"""

from __future__ import annotations

from urllib.parse import urlsplit

import pytest
import requests

from taskboard.client import ApiClientError, ClientState, TaskboardClient
from taskboard.models import Task

pytestmark = pytest.mark.integration


class _AdaptedResponse:
    def __init__(self, response) -> None:
        self._response = response
        self.status_code = response.status_code

    def json(self):
        payload = self._response.get_json(silent=True)
        if payload is None:
            raise ValueError("Response body is not JSON")
        return payload


class FlaskSessionAdapter:
    """Route ``requests``-style calls into a Flask test client."""

    def __init__(self, test_client) -> None:
        self.test_client = test_client

    def request(self, method, url, headers=None, timeout=None, json=None, params=None):
        response = self.test_client.open(
            urlsplit(url).path,
            method=method,
            headers=headers,
            json=json,
            query_string=params,
        )
        return _AdaptedResponse(response)


class BrokenSession:
    def request(self, *args, **kwargs):
        raise requests.ConnectionError("connection refused")


@pytest.fixture
def api(client, db_session) -> TaskboardClient:
    return TaskboardClient("http://taskboard.test", session=FlaskSessionAdapter(client))


class TestTaskboardClient:
    def test_register_and_manage_tasks(self, api):
        """Test a full session through the client: register, create, list, bulk, delete."""
        # Arrange
        session = api.register("dave_client", "dave@example.com", "Secret123")
        api.token = session["token"]

        # Act
        first = api.create_task({"title": "First", "priority": "low"})
        second = api.create_task({"title": "Second"})
        modified = api.bulk_update([first["id"], second["id"]], {"status": "completed"})
        listing = api.list_tasks(sortBy="priority", sortOrder="asc")
        api.delete_task(first["id"])

        # Assert
        assert modified == 2
        assert [t["title"] for t in listing["data"]] == ["First", "Second"]
        assert api.task_stats()["total"] == 1

    def test_server_errors_become_api_client_errors(self, api, user, user_token):
        api.token = user_token

        with pytest.raises(ApiClientError) as exc_info:
            api.create_task({"priority": "urgent"})

        assert exc_info.value.status_code == 400
        assert {e["field"] for e in exc_info.value.errors} == {"title", "priority"}

    def test_unauthenticated_call_is_401(self, api):
        with pytest.raises(ApiClientError) as exc_info:
            api.me()

        assert exc_info.value.status_code == 401

    def test_transport_failure_is_wrapped(self):
        api = TaskboardClient("http://unreachable.test", session=BrokenSession())

        with pytest.raises(ApiClientError) as exc_info:
            api.task_stats()

        assert exc_info.value.status_code is None
        assert exc_info.value.message == "Service unavailable"


class TestClientStateAgainstServer:
    def test_login_load_and_reconcile(self, api, user, task_factory):
        """Test that ClientState mirrors server changes into its local task list."""
        # Arrange
        existing = task_factory(user, title="Existing")
        state = ClientState(api=api)

        # Act
        state.login(user.email, "Secret123")
        state.load_tasks()
        created = state.create_task({"title": "Added"})
        state.toggle_archive(existing.id)

        # Assert
        assert {t["id"] for t in state.tasks} == {existing.id, created["id"]}
        assert [t["id"] for t in state.visible_tasks] == [created["id"]]
        assert state.stats["total"] == 1

    def test_load_tasks_collects_every_page(self, api, db_session, user):
        """Test that 150 stored tasks all reach local state, not just the first page."""
        # Arrange
        db_session.session.add_all(Task(user_id=user.id, title=f"T{i}") for i in range(150))
        db_session.session.commit()
        state = ClientState(api=api)
        state.login(user.email, "Secret123")

        # Act
        state.load_tasks()

        # Assert
        assert len(state.tasks) == 150
        assert len({t["id"] for t in state.tasks}) == 150
        assert state.total == 150
        assert state.stats["total"] == 150

    def test_logout_revokes_token_server_side(self, api, user):
        state = ClientState(api=api)
        state.login(user.email, "Secret123")
        token = state.token

        state.logout()

        api.token = token
        with pytest.raises(ApiClientError) as exc_info:
            api.me()
        assert exc_info.value.status_code == 401
