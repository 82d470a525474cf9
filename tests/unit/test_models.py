"""
Unit tests for model logic.

Covers the completed-at invariant maintained by the Task lifecycle hooks,
derived fields, serialisation shape and password hashing on User.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from taskboard.models import Task, TaskPriority, TaskStatus, User

pytestmark = pytest.mark.unit


class TestCompletedAtInvariant:
    """``completed_at`` is set exactly when ``status == completed``."""

    def test_new_task_defaults_to_todo_without_completion(self, db_session, user):
        """Test that a task created without status is todo with no completedAt."""
        # Arrange
        task = Task(user_id=user.id, title="Defaults")

        # Act
        db_session.session.add(task)
        db_session.session.commit()

        # Assert
        assert task.status == TaskStatus.TODO.value
        assert task.priority == TaskPriority.MEDIUM.value
        assert task.completed_at is None

    def test_task_created_completed_gets_completed_at(self, task_factory, user):
        """Test that creating a task as completed stamps completedAt."""
        # Act
        task = task_factory(user, status=TaskStatus.COMPLETED.value)

        # Assert
        assert task.completed_at is not None

    def test_status_change_to_completed_sets_completed_at(self, db_session, task_factory, user):
        """Test that todo -> completed sets completedAt."""
        # Arrange
        task = task_factory(user, status=TaskStatus.TODO.value)

        # Act
        task.status = TaskStatus.COMPLETED.value
        db_session.session.commit()

        # Assert
        assert task.completed_at is not None

    def test_status_change_away_from_completed_clears_completed_at(
        self, db_session, task_factory, user
    ):
        """Test that completed -> in-progress clears completedAt."""
        # Arrange
        task = task_factory(user, status=TaskStatus.COMPLETED.value)

        # Act
        task.status = TaskStatus.IN_PROGRESS.value
        db_session.session.commit()

        # Assert
        assert task.completed_at is None

    def test_editing_title_keeps_completion_time(self, db_session, task_factory, user):
        """Test that a non-status edit on a completed task does not move completedAt."""
        # Arrange
        task = task_factory(user, status=TaskStatus.COMPLETED.value)
        original = task.completed_at

        # Act
        task.title = "Renamed"
        db_session.session.commit()

        # Assert
        assert task.completed_at == original


class TestTaskDerivedFields:
    def test_past_due_open_task_is_overdue(self, task_factory, user):
        task = task_factory(user, due_date=datetime.now(timezone.utc) - timedelta(days=1))
        assert task.is_overdue is True

    def test_past_due_completed_task_is_not_overdue(self, task_factory, user):
        task = task_factory(
            user,
            status=TaskStatus.COMPLETED.value,
            due_date=datetime.now(timezone.utc) - timedelta(days=1),
        )
        assert task.is_overdue is False

    def test_task_without_due_date_is_never_overdue(self, task_factory, user):
        assert task_factory(user).is_overdue is False

    def test_fresh_task_is_zero_days_old(self, task_factory, user):
        assert task_factory(user).age_in_days == 0


class TestSerialisation:
    def test_task_to_dict_uses_wire_field_names(self, task_factory, user):
        """Test that Task.to_dict exposes camelCase keys and the owner id."""
        # Arrange
        due = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
        task = task_factory(user, title="Serialise me", due_date=due, tags=["a", "b"])

        # Act
        data = task.to_dict()

        # Assert
        assert data["user"] == user.id
        assert data["title"] == "Serialise me"
        assert data["tags"] == ["a", "b"]
        assert data["isArchived"] is False
        assert datetime.fromisoformat(data["dueDate"]) == due
        for key in ("completedAt", "isOverdue", "ageInDays", "createdAt", "updatedAt"):
            assert key in data

    def test_user_to_dict_never_exposes_password_hash(self, user):
        data = user.to_dict()

        assert "password_hash" not in data
        assert "passwordHash" not in data
        assert data["preferences"]["theme"] == "light"
        assert data["preferences"]["notifications"] == {
            "email": True,
            "push": False,
            "dueDateReminders": True,
        }


class TestPasswordHashing:
    def test_password_is_salted_and_verifiable(self):
        """Test that identical passwords hash differently yet both verify."""
        # Arrange
        first, second = User(username="a_one"), User(username="a_two")

        # Act
        first.set_password("Secret123")
        second.set_password("Secret123")

        # Assert
        assert first.password_hash != "Secret123"
        assert first.password_hash != second.password_hash
        assert first.check_password("Secret123")
        assert not first.check_password("secret123")
