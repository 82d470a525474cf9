"""
REST API endpoints for tasks.

Every endpoint is protected by bearer-token authentication (via the
``require_auth`` decorator) and rate limited in the ``api`` scope.  All
queries are scoped to the authenticated user: another user's task is
reported as 404, exactly like a missing one.

Endpoints:
    GET    /api/tasks                - List tasks (filter, search, sort, paginate)
    GET    /api/tasks/stats          - Aggregate counts over non-archived tasks
    PATCH  /api/tasks/bulk           - Apply one update to many tasks
    GET    /api/tasks/<id>           - Retrieve a single task
    POST   /api/tasks                - Create a new task
    PUT    /api/tasks/<id>           - Partial update of a task
    DELETE /api/tasks/<id>           - Delete a task
    PATCH  /api/tasks/<id>/archive   - Toggle the archived flag
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, current_app, g, request

from ..auth import require_auth
from ..rate_limit import rate_limit
from ..services import tasks as task_service
from ..validation import validate_bulk_update, validate_task_payload, validate_task_query
from . import envelope

logger = logging.getLogger(__name__)

tasks_bp = Blueprint("tasks", __name__)


@tasks_bp.route("", methods=["GET"])
@rate_limit("api")
@require_auth
def list_tasks() -> tuple[Response, int]:
    """
    List the caller's tasks.

    Query parameters: ``page``, ``limit``, ``search``, ``priority``,
    ``status``, ``sortBy``, ``sortOrder`` and ``includeArchived``.

    Returns:
        Envelope with ``data`` (tasks on this page), ``count`` (tasks on
        this page), ``total`` (matching tasks before pagination) and
        ``pagination``.
    """
    query = validate_task_query(
        request.args,
        default_limit=current_app.config["DEFAULT_PAGE_SIZE"],
        max_limit=current_app.config["MAX_PAGE_SIZE"],
    )
    logger.info("GET /api/tasks - Fetching tasks for user_id=%s", g.user_id)
    page = task_service.list_owned(g.user_id, query)
    return envelope(
        [task.to_dict() for task in page.tasks],
        count=len(page.tasks),
        total=page.total,
        pagination=page.pagination(),
    )


@tasks_bp.route("/stats", methods=["GET"])
@rate_limit("api")
@require_auth
def task_stats() -> tuple[Response, int]:
    return envelope(task_service.stats(g.user_id))


@tasks_bp.route("/bulk", methods=["PATCH"])
@rate_limit("api")
@require_auth
def bulk_update() -> tuple[Response, int]:
    """
    Apply ``updates`` to every task in ``taskIds`` owned by the caller.

    Ids the caller does not own are skipped; ``modifiedCount`` reports how
    many tasks actually changed.
    """
    task_ids, changes = validate_bulk_update(request.get_json(silent=True))
    modified = task_service.bulk_update(g.user_id, task_ids, changes)
    return envelope(
        message=f"{modified} tasks updated successfully",
        modifiedCount=modified,
    )


@tasks_bp.route("/<int:task_id>", methods=["GET"])
@rate_limit("api")
@require_auth
def get_task(task_id: int) -> tuple[Response, int]:
    return envelope(task_service.get_task(g.user_id, task_id).to_dict())


@tasks_bp.route("", methods=["POST"])
@rate_limit("api")
@require_auth
def create_task() -> tuple[Response, int]:
    """
    Create a task owned by the caller.

    Only ``title`` is required.  Client-supplied ids, owner and timestamp
    fields are ignored.
    """
    data = validate_task_payload(request.get_json(silent=True), partial=False)
    task = task_service.create_task(g.user_id, data)
    return envelope(task.to_dict(), "Task created successfully", 201)


@tasks_bp.route("/<int:task_id>", methods=["PUT"])
@rate_limit("api")
@require_auth
def update_task(task_id: int) -> tuple[Response, int]:
    changes = validate_task_payload(request.get_json(silent=True), partial=True)
    task = task_service.update_task(g.user_id, task_id, changes)
    return envelope(task.to_dict(), "Task updated successfully")


@tasks_bp.route("/<int:task_id>", methods=["DELETE"])
@rate_limit("api")
@require_auth
def delete_task(task_id: int) -> tuple[Response, int]:
    task_service.delete_task(g.user_id, task_id)
    return envelope(message="Task deleted successfully")


@tasks_bp.route("/<int:task_id>/archive", methods=["PATCH"])
@rate_limit("api")
@require_auth
def toggle_archive(task_id: int) -> tuple[Response, int]:
    task = task_service.toggle_archive(g.user_id, task_id)
    action = "archived" if task.is_archived else "unarchived"
    return envelope(task.to_dict(), f"Task {action} successfully")
