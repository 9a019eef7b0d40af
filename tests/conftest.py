"""
Shared pytest fixtures for the Task Manager test suite.

This module contains fixtures that are shared across all test modules.
Fixtures follow the Arrange-Act-Assert (AAA) pattern and ensure
test isolation by providing fresh data for each test.

Key Concepts Demonstrated:
- Fixture scopes (function, session)
- Fixture dependencies
- Test data factories (users, tasks, stores)
- Database setup/teardown
- Test client creation, with and without a signed-in session
"""

import os
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from itertools import count
from typing import Any

import pytest
from faker import Faker

# Set testing environment before importing app
os.environ["FLASK_ENV"] = "testing"

from todo_app import create_app, db
from todo_app.auth import SESSION_TOKEN_KEY, issue_token_for
from todo_app.models import User
from todo_app.persistence import open_store
from todo_app.store import Task, TaskCategory, TaskDraft, TaskPriority, TaskStore


# Initialize Faker for generating test data
fake = Faker()

FIXED_NOW = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)


# -----------------------------------------------------------------------------
# Application Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def app():
    """
    Create application instance for the test session.

    The 'session' scope means the same app instance is reused
    for all tests, improving performance.
    """
    application = create_app("testing")
    yield application


@pytest.fixture(scope="function")
def client(app):
    """Create a test client for making HTTP requests."""
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture(scope="function")
def db_session(app):
    """
    Create a fresh database for each test.

    Creates all tables before the test and drops them afterwards,
    so no rows leak between tests.
    """
    with app.app_context():
        db.create_all()
        yield db
        db.session.rollback()
        db.drop_all()


@pytest.fixture
def snapshot_backend(app, tmp_path, monkeypatch):
    """Switch task persistence to per-user JSON snapshots under tmp_path."""
    monkeypatch.setitem(app.config, "TASK_BACKEND", "snapshot")
    monkeypatch.setitem(app.config, "SNAPSHOT_DIR", str(tmp_path / "snapshots"))
    return tmp_path / "snapshots"


# -----------------------------------------------------------------------------
# Store Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def ticking_clock() -> Callable[[], datetime]:
    """Clock that advances one minute per call, starting at FIXED_NOW."""
    minutes = count()
    return lambda: FIXED_NOW + timedelta(minutes=next(minutes))


@pytest.fixture
def sequential_ids() -> Callable[[], str]:
    """Id factory returning task-1, task-2, ..."""
    numbers = count(1)
    return lambda: f"task-{next(numbers)}"


@pytest.fixture
def store(ticking_clock, sequential_ids) -> TaskStore:
    """Empty store with deterministic clock and ids."""
    return TaskStore(clock=ticking_clock, id_factory=sequential_ids)


@pytest.fixture
def draft_factory() -> Callable[..., TaskDraft]:
    """Factory for drafts with random text."""

    def _create_draft(text: str | None = None, **fields: Any) -> TaskDraft:
        return TaskDraft(text=text or fake.sentence(nb_words=4), **fields)

    return _create_draft


@pytest.fixture
def populated_store(store) -> TaskStore:
    """
    Store holding four varied tasks.

    Order after creation (newest first): Team meeting, Read chapter 4,
    Pay rent, Write report.
    """
    store.add(TaskDraft("Write report", priority=TaskPriority.HIGH,
                        category=TaskCategory.WORK))
    store.add(TaskDraft("Pay rent", priority=TaskPriority.LOW,
                        category=TaskCategory.PERSONAL, completed=True))
    store.add(TaskDraft("Read chapter 4", priority=TaskPriority.MEDIUM,
                        category=TaskCategory.STUDY))
    store.add(TaskDraft("Team meeting", priority=TaskPriority.HIGH,
                        category=TaskCategory.WORK))
    return store


# -----------------------------------------------------------------------------
# User / Auth Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def user_factory(db_session) -> Callable[..., User]:
    """Factory that creates and persists User records with unique names."""

    def _create_user(
        username: str | None = None,
        email: str | None = None,
        password: str = "StrongPass123!",
    ) -> User:
        user = User(
            username=username or fake.unique.user_name(),
            email=email or fake.unique.email(),
        )
        user.set_password(password)
        db_session.session.add(user)
        db_session.session.commit()
        return user

    return _create_user


@pytest.fixture
def user(user_factory) -> User:
    return user_factory(username="alice", email="alice@example.com")


@pytest.fixture
def api_headers() -> dict[str, str]:
    """Provide common headers for API requests."""
    return {
        "Content-Type": "application/json",
        "Accept": "application/json"
    }


@pytest.fixture
def auth_headers(app, user, api_headers) -> dict[str, str]:
    """API headers carrying a valid Bearer token for ``user``."""
    token = issue_token_for(user.id, user.username)
    return {**api_headers, "Authorization": f"Bearer {token}"}


@pytest.fixture
def logged_in_client(client, user):
    """Test client whose session already holds a token for ``user``."""
    with client.session_transaction() as session:
        session[SESSION_TOKEN_KEY] = issue_token_for(user.id, user.username)
    return client


@pytest.fixture
def task_factory(app, user) -> Callable[..., Task]:
    """
    Factory that adds tasks to ``user``'s stored collection.

    Example:
        def test_something(task_factory):
            task = task_factory("My Task", priority="high")
            assert task.id
    """

    def _create_task(text: str | None = None, owner: User | None = None, **fields: Any) -> Task:
        with open_store((owner or user).id) as task_store:
            return task_store.add(TaskDraft(text=text or fake.sentence(nb_words=4), **fields))

    return _create_task


@pytest.fixture
def valid_task_data() -> dict[str, Any]:
    """Provide valid task data for POST/PUT requests."""
    return {
        "text": "Finish report",
        "priority": TaskPriority.HIGH.value,
        "category": TaskCategory.WORK.value,
        "due_date": (datetime.now(timezone.utc) + timedelta(days=1)).isoformat(),
    }
