"""
HTTP client for the Taskboard REST API.

``TaskboardClient`` wraps one ``requests.Session`` and exposes a method per
endpoint.  Responses are unwrapped from the ``{success, data, message,
errors}`` envelope; a ``success: false`` body, a non-JSON body or a
network failure is raised as ``ApiClientError`` so callers deal with a
single exception type.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


class ApiClientError(Exception):
    """A failed API call, carrying the server's status code and field errors."""

    def __init__(
        self,
        status_code: int | None,
        message: str,
        errors: list[dict[str, str]] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.errors = errors or []

    def __repr__(self) -> str:
        return f"ApiClientError(status_code={self.status_code!r}, message={self.message!r})"


def _error_from_response(response: requests.Response, payload: Any) -> ApiClientError:
    message = f"Request failed with status {response.status_code}"
    errors = None
    if isinstance(payload, dict):
        if isinstance(payload.get("message"), str) and payload["message"].strip():
            message = payload["message"]
        errors = payload.get("errors")
    return ApiClientError(response.status_code, message, errors)


class TaskboardClient:
    """
    Thin, synchronous client for the Taskboard API.

    Args:
        base_url: Server root, e.g. ``"http://localhost:5000"``.
        token: Optional bearer token to start with.
        timeout: Per-request timeout in seconds.
        session: Optional ``requests.Session`` (or compatible object with a
            ``request`` method); a new session is created when omitted.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """
        Send a request and return the decoded envelope.

        Raises:
            ApiClientError: Transport failure, non-JSON body, or an
                envelope with ``success: false``.
        """
        url = f"{self.base_url}/api{path}"
        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.Timeout as exc:
            logger.warning("%s %s timed out", method, url)
            raise ApiClientError(None, "Request timed out") from exc
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise ApiClientError(None, "Service unavailable") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code >= 400 or not isinstance(payload, dict) or not payload.get("success"):
            raise _error_from_response(response, payload)
        return payload

    # -- auth ----------------------------------------------------------

    def register(self, username: str, email: str, password: str) -> dict[str, Any]:
        payload = self.request(
            "POST",
            "/auth/register",
            json={"username": username, "email": email, "password": password},
        )
        return payload["data"]

    def login(self, email: str, password: str) -> dict[str, Any]:
        payload = self.request("POST", "/auth/login", json={"email": email, "password": password})
        return payload["data"]

    def refresh(self, refresh_token: str) -> str:
        payload = self.request("POST", "/auth/refresh", json={"refreshToken": refresh_token})
        return payload["data"]["token"]

    def me(self) -> dict[str, Any]:
        return self.request("GET", "/auth/me")["data"]["user"]

    def update_profile(self, **changes: str) -> dict[str, Any]:
        return self.request("PUT", "/auth/profile", json=changes)["data"]["user"]

    def change_password(self, current_password: str, new_password: str) -> None:
        self.request(
            "PUT",
            "/auth/password",
            json={"currentPassword": current_password, "newPassword": new_password},
        )

    def logout(self, refresh_token: str | None = None) -> None:
        body = {"refreshToken": refresh_token} if refresh_token else {}
        self.request("POST", "/auth/logout", json=body)

    # -- preferences ---------------------------------------------------

    def get_preferences(self) -> dict[str, Any]:
        return self.request("GET", "/preferences")["data"]["preferences"]

    def update_preferences(self, patch: dict[str, Any]) -> dict[str, Any]:
        return self.request("PUT", "/preferences", json=patch)["data"]["preferences"]

    # -- tasks ---------------------------------------------------------

    def list_tasks(self, **params: Any) -> dict[str, Any]:
        """
        ``GET /tasks`` with camelCase query parameters passed through.

        Returns the whole envelope so callers can read ``total`` and
        ``pagination`` alongside ``data``.
        """
        params = {k: v for k, v in params.items() if v is not None}
        return self.request("GET", "/tasks", params=params)

    def task_stats(self) -> dict[str, int]:
        return self.request("GET", "/tasks/stats")["data"]

    def get_task(self, task_id: int) -> dict[str, Any]:
        return self.request("GET", f"/tasks/{task_id}")["data"]

    def create_task(self, data: dict[str, Any]) -> dict[str, Any]:
        return self.request("POST", "/tasks", json=data)["data"]

    def update_task(self, task_id: int, changes: dict[str, Any]) -> dict[str, Any]:
        return self.request("PUT", f"/tasks/{task_id}", json=changes)["data"]

    def delete_task(self, task_id: int) -> None:
        self.request("DELETE", f"/tasks/{task_id}")

    def toggle_archive(self, task_id: int) -> dict[str, Any]:
        return self.request("PATCH", f"/tasks/{task_id}/archive")["data"]

    def bulk_update(self, task_ids: list[int], updates: dict[str, Any]) -> int:
        payload = self.request(
            "PATCH", "/tasks/bulk", json={"taskIds": task_ids, "updates": updates}
        )
        return payload["modifiedCount"]
