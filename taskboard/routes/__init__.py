"""
Routes package for the Taskboard API.

This package contains the route blueprints:
- health: liveness probe
- auth: registration, login, profile and session lifecycle
- preferences: per-user theme and notification settings
- tasks: task CRUD, listing, statistics, archive and bulk update

Every successful response uses the same envelope as the error handlers:
``{"success": true, "data": ..., "message": ...}``.
"""

from __future__ import annotations

from typing import Any

from flask import Response, jsonify, request

from ..validation import require_json_object


def envelope(
    data: Any = None,
    message: str | None = None,
    status_code: int = 200,
    **extra: Any,
) -> tuple[Response, int]:
    """Build a ``{"success": true, ...}`` JSON response."""
    body: dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    body.update(extra)
    if data is not None:
        body["data"] = data
    return jsonify(body), status_code


def json_body() -> dict[str, Any]:
    """Return the request's JSON object body, or raise ``ValidationError``."""
    return require_json_object(request.get_json(silent=True))
