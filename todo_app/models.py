"""
Database models for the Task Manager application.

This module defines SQLAlchemy models representing the data structure
of the application. Each model maps to a database table.

- ``User`` owns a task collection and authenticates with a hashed password.
- ``TaskRecord`` is the stored form of a ``todo_app.store.Task``; the
  ``position`` column keeps the user-controlled order of the collection.
"""

from datetime import datetime, timezone
from typing import Any

from werkzeug.security import check_password_hash, generate_password_hash

from todo_app import db
from todo_app.store import Task, TaskCategory, TaskPriority


def _to_utc_iso(value: datetime | None) -> str | None:
    """
    Convert datetime to an ISO-8601 UTC string.

    SQLite commonly returns naive datetime values even when timezone-aware
    columns are declared. For API contracts, always normalize to UTC.
    """
    if value is None:
        return None
    return ensure_utc(value).isoformat()


def ensure_utc(value: datetime) -> datetime:
    """Normalize datetimes to timezone-aware UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class User(db.Model):
    """
    Registered user; the owner of one task collection.

    Attributes:
        id: Auto-incrementing primary key.
        username: Unique login name (max 80 characters).
        email: Unique email address (max 120 characters).
        password_hash: Werkzeug hash of the password; never serialised.
        created_at: Timestamp of account creation (UTC).
    """

    __tablename__ = "users"

    id: int = db.Column(db.Integer, primary_key=True)
    username: str = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email: str = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash: str = db.Column(db.String(256), nullable=False)
    created_at: datetime = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def to_dict(self) -> dict[str, Any]:
        """Return the public profile (no password hash)."""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "created_at": _to_utc_iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.username}>"


class TaskRecord(db.Model):
    """
    Stored task row, scoped to its owner.

    Attributes:
        id: Store-assigned opaque identifier (UUID hex).
        owner_id: Owning user; every query filters on it.
        position: Sort key of the collection; lower values come first.
        text: Display text.
        completed: Completion flag.
        priority: One of ``TaskPriority``.
        category: One of ``TaskCategory``.
        due_date: Optional deadline.
        created_at: Creation timestamp (UTC).
    """

    __tablename__ = "tasks"

    id: str = db.Column(db.String(32), primary_key=True)
    owner_id: int = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    position: int = db.Column(db.Integer, nullable=False, default=0)
    text: str = db.Column(db.Text, nullable=False)
    completed: bool = db.Column(db.Boolean, nullable=False, default=False)
    priority: str = db.Column(
        db.String(20),
        nullable=False,
        default=TaskPriority.MEDIUM.value
    )
    category: str = db.Column(
        db.String(20),
        nullable=False,
        default=TaskCategory.PERSONAL.value
    )
    due_date: datetime | None = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at: datetime = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    @classmethod
    def from_task(cls, task: Task, owner_id: int, position: int) -> "TaskRecord":
        return cls(
            id=task.id,
            owner_id=owner_id,
            position=position,
            text=task.text,
            completed=task.completed,
            priority=TaskPriority(task.priority).value,
            category=TaskCategory(task.category).value,
            due_date=ensure_utc(task.due_date) if task.due_date else None,
            created_at=ensure_utc(task.created_at),
        )

    def to_task(self) -> Task:
        """Rebuild the store value object, normalising datetimes to UTC."""
        return Task(
            id=self.id,
            text=self.text,
            completed=bool(self.completed),
            priority=TaskPriority(self.priority),
            category=TaskCategory(self.category),
            due_date=ensure_utc(self.due_date) if self.due_date else None,
            created_at=ensure_utc(self.created_at),
        )

    def __repr__(self) -> str:
        return f"<TaskRecord {self.id}: {self.text}>"
