"""
Shared pytest fixtures for the Taskboard test suite.

Provides the Flask application, test client, a clean database per test,
user/task factories and authenticated request headers.  Tokens used by
the fixtures are issued through the real token service so they carry a
server-side record, exactly like tokens handed out by ``/api/auth/login``.

Key Concepts Demonstrated:
- Session-scoped app vs function-scoped database for speed and isolation
- Factory pattern (user_factory, task_factory) for flexible test data
- Per-test reset of in-memory state (rate limiter buckets)
- Ephemeral RS256 key pair injected through environment variables
"""

from __future__ import annotations

import os
from datetime import datetime
from typing import Any

import pytest
from faker import Faker

# Set testing environment before the app is created
os.environ["FLASK_ENV"] = "testing"

from tests.helpers import DEFAULT_PASSWORD, TEST_PRIVATE_KEY, TEST_PUBLIC_KEY, auth_headers

os.environ["TEST_JWT_PRIVATE_KEY"] = TEST_PRIVATE_KEY
os.environ["TEST_JWT_PUBLIC_KEY"] = TEST_PUBLIC_KEY

from taskboard import create_app, db
from taskboard.models import Task, TaskPriority, TaskStatus, User, default_preferences
from taskboard.tokens import issue_token

fake = Faker()


# -----------------------------------------------------------------------------
# Application Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture(scope="session")
def app():
    """Create the Flask app once, using the 'testing' configuration."""
    application = create_app("testing")
    yield application


@pytest.fixture(scope="function")
def client(app):
    """Provide a fresh test client for every test."""
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture(scope="function")
def db_session(app):
    """
    Provide a clean database for each test function.

    Creates all tables before the test, then rolls back uncommitted
    changes and drops every table so the next test starts empty.
    """
    with app.app_context():
        db.create_all()
        yield db
        db.session.rollback()
        db.drop_all()


@pytest.fixture(autouse=True)
def reset_rate_limiter(app):
    """Clear rate-limit buckets so request counts never leak between tests."""
    app.extensions["rate_limiter"].reset()
    yield
    app.extensions["rate_limiter"].reset()


# -----------------------------------------------------------------------------
# Test Data Factory Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def user_factory(db_session):
    """
    Factory fixture that creates User rows.

    Usernames and emails come from Faker with a numeric suffix, so they are
    unique within a test and valid for the API's username rules.
    """
    counter = {"n": 0}

    def _create_user(
        *,
        username: str | None = None,
        email: str | None = None,
        password: str = DEFAULT_PASSWORD,
        is_active: bool = True,
    ) -> User:
        counter["n"] += 1
        user = User(
            username=username or f"{fake.first_name().lower()}_{counter['n']}",
            email=email or f"user{counter['n']}.{fake.domain_name()}@example.com".lower(),
            is_active=is_active,
            preferences=default_preferences(),
        )
        user.set_password(password)
        db_session.session.add(user)
        db_session.session.commit()
        return user

    return _create_user


@pytest.fixture
def task_factory(db_session):
    """
    Factory fixture that creates Task rows for a given owner.

    Returns a callable ``_create_task(owner, **kwargs)`` with Faker-generated
    defaults for title and description.
    """

    def _create_task(
        owner: User,
        *,
        title: str | None = None,
        description: str | None = None,
        status: str = TaskStatus.TODO.value,
        priority: str = TaskPriority.MEDIUM.value,
        due_date: datetime | None = None,
        tags: list[str] | None = None,
        is_archived: bool = False,
    ) -> Task:
        task = Task(
            user_id=owner.id,
            title=title or fake.sentence(nb_words=4),
            description=description if description is not None else fake.paragraph(),
            status=status,
            priority=priority,
            due_date=due_date,
            tags=tags or [],
            is_archived=is_archived,
        )
        db_session.session.add(task)
        db_session.session.commit()
        return task

    return _create_task


# -----------------------------------------------------------------------------
# Authenticated User Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def user(user_factory) -> User:
    """The primary authenticated user."""
    return user_factory(username="alice_owner", email="alice@example.com")


@pytest.fixture
def other_user(user_factory) -> User:
    """A second user for tenant-isolation assertions."""
    return user_factory(username="bob_other", email="bob@example.com")


@pytest.fixture
def user_token(user) -> str:
    return issue_token(user)


@pytest.fixture
def api_headers(user_token) -> dict[str, str]:
    """Bearer + JSON headers for ``user``."""
    return auth_headers(user_token)


@pytest.fixture
def other_user_headers(other_user) -> dict[str, str]:
    """Bearer + JSON headers for ``other_user``."""
    return auth_headers(issue_token(other_user))


@pytest.fixture
def valid_task_data() -> dict[str, Any]:
    """A complete, valid task payload using wire (camelCase) field names."""
    return {
        "title": "Write release notes",
        "description": "Summarise the changes for this sprint",
        "priority": "high",
        "status": "todo",
        "dueDate": "2030-01-15T09:00:00Z",
        "tags": ["docs", "release"],
    }
