"""
Database models for Taskboard.

Defines the SQLAlchemy ORM models behind the application: ``User`` (the
credential store), ``Task`` (user-owned work items) and ``Token`` (the
server-side record of every issued bearer token, used for revocation and
retention).  Enumerations for roles, task status and priority live here
too, together with the ordinal rankings used for sorting.

Key Concepts Demonstrated:
- SQLAlchemy declarative models with explicit table constraints
- Werkzeug password hashing (salted, one-way)
- ``str, Enum`` inheritance for JSON-friendly enumeration values
- ORM lifecycle hooks that keep ``completed_at`` consistent with status
- Safe serialisation that excludes sensitive fields
"""

from __future__ import annotations

import copy
import sqlite3
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import event, inspect
from sqlalchemy.engine import Engine
from werkzeug.security import check_password_hash, generate_password_hash

from . import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalise a datetime to UTC.

    SQLite does not store timezone information, so datetimes read back
    from the database may be *naive* even though they were written in UTC.
    Naive values are assumed to be UTC; aware values are converted.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_utc_iso(value: datetime | None) -> str | None:
    """Serialise a datetime to an ISO-8601 UTC string (``None`` passes through)."""
    if value is None:
        return None
    return ensure_utc(value).isoformat()


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


class TaskStatus(str, Enum):
    """
    Enumeration of task lifecycle statuses.

    Inherits from ``str`` so that each member's value is a plain string
    that serialises directly to JSON and compares equal to the raw value
    stored in the database column.
    """

    TODO = "todo"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class TaskPriority(str, Enum):
    """Enumeration of task priority levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TokenType(str, Enum):
    AUTH = "auth"
    REFRESH = "refresh"


# Ordinal ranks used when sorting by priority or status.  Alphabetical
# order would put "high" before "low" and "completed" before "todo".
PRIORITY_RANK: dict[str, int] = {
    TaskPriority.LOW.value: 1,
    TaskPriority.MEDIUM.value: 2,
    TaskPriority.HIGH.value: 3,
}
STATUS_RANK: dict[str, int] = {
    TaskStatus.TODO.value: 1,
    TaskStatus.IN_PROGRESS.value: 2,
    TaskStatus.COMPLETED.value: 3,
}

# Largest value a 64-bit INTEGER primary key can hold.
MAX_ROW_ID = 2**63 - 1

DEFAULT_NOTIFICATIONS: dict[str, bool] = {
    "email": True,
    "push": False,
    "dueDateReminders": True,
}


def default_preferences() -> dict[str, Any]:
    return {
        "theme": Theme.LIGHT.value,
        "notifications": copy.deepcopy(DEFAULT_NOTIFICATIONS),
    }


class User(db.Model):
    """
    Registered user of the system.

    Passwords are never stored in plain text -- only a one-way hash is
    persisted.  ``to_dict`` deliberately omits ``password_hash`` so it can
    be returned in API responses.

    Attributes:
        id: Auto-incrementing integer primary key.
        username: Unique display name (3-30 chars, letters, digits, ``_``).
        email: Unique, lower-cased email address.  Indexed because every
            login looks a user up by email.
        password_hash: Werkzeug-generated salted hash.
        role: ``user`` or ``admin``.
        is_active: Deactivated users can neither log in nor use old tokens.
        preferences: ``{"theme": ..., "notifications": {...}}`` document.
        created_at: Timestamp of account creation (UTC).
        updated_at: Timestamp of last modification (UTC).
    """

    __tablename__ = "users"

    __table_args__ = (
        db.CheckConstraint("length(username) <= 30", name="ck_users_username_len"),
        db.CheckConstraint("length(email) <= 254", name="ck_users_email_len"),
    )

    id: int = db.Column(db.Integer, primary_key=True)
    username: str = db.Column(db.String(30), unique=True, nullable=False, index=True)
    email: str = db.Column(db.String(254), unique=True, nullable=False, index=True)
    password_hash: str = db.Column(db.String(256), nullable=False)
    role: str = db.Column(db.String(20), nullable=False, default=UserRole.USER.value)
    is_active: bool = db.Column(db.Boolean, nullable=False, default=True)
    preferences: dict = db.Column(db.JSON, nullable=False, default=default_preferences)
    created_at: datetime = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: datetime = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def set_password(self, password: str) -> None:
        """
        Hash and store a plain-text password.

        Uses Werkzeug's ``generate_password_hash`` which salts every hash,
        so two users with the same password get different hashes.
        """
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Return ``True`` if *password* matches the stored hash."""
        return check_password_hash(self.password_hash, password)

    def to_dict(self) -> dict[str, Any]:
        """
        Return a user-safe dictionary representation.

        The ``password_hash`` field is intentionally excluded.
        """
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "isActive": self.is_active,
            "preferences": self.preferences or default_preferences(),
            "createdAt": to_utc_iso(self.created_at),
            "updatedAt": to_utc_iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.username}>"


class Task(db.Model):
    """
    Task owned by a single user.

    Attributes:
        id: Auto-incrementing primary key.
        user_id: Owning user.  Set from the authenticated caller at creation
            and never changed afterwards; every query in the service layer
            filters on it.
        title: Short summary (max 200 characters).
        description: Optional details (max 1000 characters).
        priority: See ``TaskPriority``.
        status: See ``TaskStatus``.
        due_date: Optional timezone-aware deadline.
        completed_at: Set when status becomes ``completed``, cleared when it
            leaves it.  Maintained by the ``before_insert``/``before_update``
            hooks below.
        tags: Ordered list of short labels.
        is_archived: Archived tasks are hidden from default listings and
            statistics but not deleted.
        created_at: Timestamp of task creation (UTC).
        updated_at: Timestamp of last modification (UTC, auto-updated).
    """

    __tablename__ = "tasks"

    __table_args__ = (
        db.Index("ix_tasks_user_created", "user_id", "created_at"),
        db.Index("ix_tasks_user_status", "user_id", "status"),
        db.Index("ix_tasks_user_priority", "user_id", "priority"),
        db.Index("ix_tasks_user_due", "user_id", "due_date"),
    )

    id: int = db.Column(db.Integer, primary_key=True)
    user_id: int = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: str = db.Column(db.String(200), nullable=False)
    description: str | None = db.Column(db.String(1000), nullable=True)
    priority: str = db.Column(
        db.String(20), nullable=False, default=TaskPriority.MEDIUM.value
    )
    status: str = db.Column(db.String(20), nullable=False, default=TaskStatus.TODO.value)
    due_date: datetime | None = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at: datetime | None = db.Column(db.DateTime(timezone=True), nullable=True)
    tags: list = db.Column(db.JSON, nullable=False, default=list)
    is_archived: bool = db.Column(db.Boolean, nullable=False, default=False)
    created_at: datetime = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: datetime = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    @property
    def is_overdue(self) -> bool:
        if self.due_date is None or self.status == TaskStatus.COMPLETED.value:
            return False
        return ensure_utc(self.due_date) < utcnow()

    @property
    def age_in_days(self) -> int:
        if self.created_at is None:
            return 0
        return (utcnow() - ensure_utc(self.created_at)).days

    def sync_completed_at(self) -> None:
        """Set or clear ``completed_at`` so it agrees with ``status``."""
        if self.status == TaskStatus.COMPLETED.value:
            if self.completed_at is None:
                self.completed_at = utcnow()
        else:
            self.completed_at = None

    def to_dict(self) -> dict[str, Any]:
        """
        Serialise the task to a JSON-safe dictionary.

        Datetime values are converted to UTC ISO-8601 strings; the derived
        ``isOverdue`` and ``ageInDays`` values are included for clients.
        """
        return {
            "id": self.id,
            "user": self.user_id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "status": self.status,
            "dueDate": to_utc_iso(self.due_date),
            "completedAt": to_utc_iso(self.completed_at),
            "tags": list(self.tags or []),
            "isArchived": self.is_archived,
            "isOverdue": self.is_overdue,
            "ageInDays": self.age_in_days,
            "createdAt": to_utc_iso(self.created_at),
            "updatedAt": to_utc_iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Task {self.id}: {self.title}>"


@event.listens_for(Engine, "connect")
def _sqlite_unicode_lower(dbapi_connection, connection_record) -> None:
    # SQLite's built-in lower() only folds ASCII.
    if isinstance(dbapi_connection, sqlite3.Connection):
        dbapi_connection.create_function("lower", 1, _fold, deterministic=True)


def _fold(value: str | None) -> str | None:
    return value.lower() if isinstance(value, str) else value


@event.listens_for(Task, "before_insert")
def _task_before_insert(mapper, connection, target: Task) -> None:
    if target.status is None:
        target.status = TaskStatus.TODO.value
    target.sync_completed_at()


@event.listens_for(Task, "before_update")
def _task_before_update(mapper, connection, target: Task) -> None:
    # Only a status change recomputes completed_at; editing the title of a
    # completed task must not move its completion time.
    if inspect(target).attrs.status.history.has_changes():
        if target.status == TaskStatus.COMPLETED.value:
            target.completed_at = utcnow()
        else:
            target.completed_at = None


class Token(db.Model):
    """
    Server-side record of an issued bearer token.

    The token string itself is never stored; the ``jti`` claim identifies
    it.  Deleting the row revokes the token.  Rows older than the retention
    window stop authorising requests even if the JWT ``exp`` is still in
    the future, and are removed by ``purge_expired_tokens``.
    """

    __tablename__ = "tokens"

    __table_args__ = (db.Index("ix_tokens_user_type", "user_id", "type"),)

    id: int = db.Column(db.Integer, primary_key=True)
    jti: str = db.Column(db.String(64), unique=True, nullable=False, index=True)
    user_id: int = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: str = db.Column(db.String(20), nullable=False)
    expires: datetime = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at: datetime = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )

    def __repr__(self) -> str:
        return f"<Token {self.jti} user={self.user_id} type={self.type}>"
