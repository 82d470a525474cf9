"""
Request payload validation.

Each ``validate_*`` function takes the raw JSON body (or query-string
mapping) and either returns cleaned values ready for the service layer or
raises ``ValidationError`` listing *every* failing field, not just the
first.  Validation happens here, at the boundary, so invalid input never
reaches a store.

Unknown fields are dropped rather than rejected, which is what keeps
clients from mass-assigning ``id``, ``user`` or timestamp columns.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from .errors import ValidationError, field_error
from .models import MAX_ROW_ID, TaskPriority, TaskStatus, Theme, ensure_utc
from .query import SORT_FIELDS, SORT_ORDERS, TaskQuery

USERNAME_RE = re.compile(r"^[A-Za-z0-9_]+$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_STRENGTH_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")

USERNAME_MIN, USERNAME_MAX = 3, 30
PASSWORD_MIN = 6
TITLE_MAX = 200
DESCRIPTION_MAX = 1000
TAG_MAX = 50

VALID_PRIORITIES = [p.value for p in TaskPriority]
VALID_STATUSES = [s.value for s in TaskStatus]
VALID_THEMES = [t.value for t in Theme]
TRUE_VALUES = {"true", "1", "yes"}


def _raise_if(errors: list[dict[str, str]]) -> None:
    if errors:
        raise ValidationError("Validation failed", errors=errors)


def require_json_object(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _check_username(value: Any, errors: list[dict[str, str]]) -> str | None:
    if not isinstance(value, str):
        errors.append(field_error("username", "Username is required"))
        return None
    username = value.strip()
    if not USERNAME_MIN <= len(username) <= USERNAME_MAX:
        errors.append(
            field_error("username", "Username must be between 3 and 30 characters")
        )
    elif not USERNAME_RE.match(username):
        errors.append(
            field_error(
                "username", "Username can only contain letters, numbers, and underscores"
            )
        )
    return username


def _check_email(value: Any, errors: list[dict[str, str]]) -> str | None:
    if not isinstance(value, str) or not EMAIL_RE.match(value.strip()):
        errors.append(field_error("email", "Please provide a valid email"))
        return None
    return normalize_email(value)


def _check_new_password(field: str, value: Any, errors: list[dict[str, str]]) -> str | None:
    if not isinstance(value, str) or len(value) < PASSWORD_MIN:
        errors.append(field_error(field, "Password must be at least 6 characters long"))
        return None
    if not PASSWORD_STRENGTH_RE.match(value):
        errors.append(
            field_error(
                field,
                "Password must contain at least one lowercase letter, "
                "one uppercase letter, and one number",
            )
        )
        return None
    return value


def validate_registration(data: Any) -> dict[str, str]:
    data = require_json_object(data)
    errors: list[dict[str, str]] = []
    username = _check_username(data.get("username"), errors)
    email = _check_email(data.get("email"), errors)
    password = _check_new_password("password", data.get("password"), errors)
    _raise_if(errors)
    return {"username": username, "email": email, "password": password}


def validate_login(data: Any) -> tuple[str, str]:
    data = require_json_object(data)
    errors: list[dict[str, str]] = []
    email = _check_email(data.get("email"), errors)
    password = data.get("password")
    if not isinstance(password, str) or not password:
        errors.append(field_error("password", "Password is required"))
    _raise_if(errors)
    return email, password


def validate_profile_update(data: Any) -> dict[str, str]:
    data = require_json_object(data)
    errors: list[dict[str, str]] = []
    changes: dict[str, str] = {}
    if "username" in data:
        username = _check_username(data["username"], errors)
        if username is not None:
            changes["username"] = username
    if "email" in data:
        email = _check_email(data["email"], errors)
        if email is not None:
            changes["email"] = email
    _raise_if(errors)
    return changes


def validate_password_change(data: Any) -> tuple[str, str]:
    data = require_json_object(data)
    errors: list[dict[str, str]] = []
    current = data.get("currentPassword")
    if not isinstance(current, str) or not current:
        errors.append(field_error("currentPassword", "Current password is required"))
    new = _check_new_password("newPassword", data.get("newPassword"), errors)
    _raise_if(errors)
    return current, new


def parse_datetime(value: str) -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into a UTC datetime."""
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def validate_task_payload(data: Any, *, partial: bool) -> dict[str, Any]:
    """
    Validate a task create (``partial=False``) or update (``partial=True``) body.

    Returns:
        A mapping of ``Task`` attribute names to cleaned values.  On create,
        only ``title`` is mandatory; priority and status fall back to the
        model defaults when omitted.
    """
    data = require_json_object(data)
    errors: list[dict[str, str]] = []
    changes: dict[str, Any] = {}

    if "title" in data or not partial:
        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            errors.append(field_error("title", "Title is required"))
        elif len(title.strip()) > TITLE_MAX:
            errors.append(field_error("title", "Title must be 200 characters or less"))
        else:
            changes["title"] = title.strip()

    if "description" in data:
        description = data["description"]
        if description is None:
            changes["description"] = None
        elif not isinstance(description, str):
            errors.append(field_error("description", "Description must be a string"))
        elif len(description.strip()) > DESCRIPTION_MAX:
            errors.append(
                field_error("description", "Description must be 1000 characters or less")
            )
        else:
            changes["description"] = description.strip()

    if "priority" in data:
        if data["priority"] not in VALID_PRIORITIES:
            errors.append(field_error("priority", "Priority must be low, medium, or high"))
        else:
            changes["priority"] = data["priority"]

    if "status" in data:
        if data["status"] not in VALID_STATUSES:
            errors.append(
                field_error("status", "Status must be todo, in-progress, or completed")
            )
        else:
            changes["status"] = data["status"]

    if "dueDate" in data:
        due_date = data["dueDate"]
        if due_date in (None, ""):
            changes["due_date"] = None
        else:
            try:
                changes["due_date"] = parse_datetime(due_date)
            except (ValueError, AttributeError):
                errors.append(
                    field_error("dueDate", "Invalid dueDate format. Use ISO-8601")
                )

    if "tags" in data:
        tags = data["tags"]
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            errors.append(field_error("tags", "Tags must be a list of strings"))
        else:
            cleaned = [t.strip() for t in tags if t.strip()]
            if any(len(t) > TAG_MAX for t in cleaned):
                errors.append(field_error("tags", "Tag cannot exceed 50 characters"))
            else:
                changes["tags"] = cleaned

    if partial and "isArchived" in data:
        if not isinstance(data["isArchived"], bool):
            errors.append(field_error("isArchived", "isArchived must be a boolean"))
        else:
            changes["is_archived"] = data["isArchived"]

    _raise_if(errors)
    return changes


def _parse_int(args: Mapping[str, Any], name: str, default: int) -> int | None:
    raw = args.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def validate_task_query(args: Mapping[str, Any], *, default_limit: int = 10, max_limit: int = 100) -> TaskQuery:
    """Validate the ``GET /tasks`` query string into a ``TaskQuery``."""
    errors: list[dict[str, str]] = []

    page = _parse_int(args, "page", 1)
    if page is None or page < 1:
        errors.append(field_error("page", "Page must be a positive integer"))

    limit = _parse_int(args, "limit", default_limit)
    if limit is None or not 1 <= limit <= max_limit:
        errors.append(field_error("limit", f"Limit must be between 1 and {max_limit}"))
    elif page is not None and page >= 1 and (page - 1) * limit > MAX_ROW_ID:
        errors.append(field_error("page", "Page is out of range"))

    priority = args.get("priority") or None
    if priority is not None and priority not in VALID_PRIORITIES:
        errors.append(field_error("priority", "Priority must be low, medium, or high"))

    status = args.get("status") or None
    if status is not None and status not in VALID_STATUSES:
        errors.append(field_error("status", "Status must be todo, in-progress, or completed"))

    sort_by = args.get("sortBy") or "createdAt"
    if sort_by not in SORT_FIELDS:
        errors.append(
            field_error(
                "sortBy", "SortBy must be title, priority, status, createdAt, or updatedAt"
            )
        )

    sort_order = args.get("sortOrder") or "desc"
    if sort_order not in SORT_ORDERS:
        errors.append(field_error("sortOrder", "SortOrder must be asc or desc"))

    _raise_if(errors)
    search = (args.get("search") or "").strip() or None
    include_archived = str(args.get("includeArchived", "")).lower() in TRUE_VALUES
    return TaskQuery(
        page=page,
        limit=limit,
        search=search,
        priority=priority,
        status=status,
        sort_by=sort_by,
        sort_order=sort_order,
        include_archived=include_archived,
    )


def validate_bulk_update(data: Any) -> tuple[list[int], dict[str, Any]]:
    data = require_json_object(data)
    errors: list[dict[str, str]] = []

    task_ids = data.get("taskIds")
    if not isinstance(task_ids, list) or not task_ids:
        errors.append(field_error("taskIds", "Task IDs array is required"))
        task_ids = []
    elif not all(isinstance(i, int) and not isinstance(i, bool) and 0 < i <= MAX_ROW_ID for i in task_ids):
        errors.append(field_error("taskIds", "Invalid task ID format"))

    updates = data.get("updates")
    if not isinstance(updates, dict):
        errors.append(field_error("updates", "Updates object is required"))
        updates = {}

    changes: dict[str, Any] = {}
    try:
        changes = validate_task_payload(updates, partial=True)
    except ValidationError as exc:
        errors.extend(exc.errors or [])

    _raise_if(errors)
    # Preserve order, drop duplicates.
    return list(dict.fromkeys(task_ids)), changes


def validate_preferences(data: Any) -> dict[str, Any]:
    data = require_json_object(data)
    errors: list[dict[str, str]] = []
    patch: dict[str, Any] = {}

    if data.get("theme") is not None:
        if data["theme"] not in VALID_THEMES:
            errors.append(field_error("theme", "Theme must be light or dark"))
        else:
            patch["theme"] = data["theme"]

    if data.get("notifications") is not None:
        notifications = data["notifications"]
        if not isinstance(notifications, dict) or not all(
            isinstance(v, bool) for v in notifications.values()
        ):
            errors.append(
                field_error("notifications", "Notifications must map names to booleans")
            )
        else:
            patch["notifications"] = notifications

    _raise_if(errors)
    return patch
