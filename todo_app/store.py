"""
In-memory task collection for the Task Manager.

``TaskStore`` owns the ordered list of a single user's tasks and applies
every lifecycle rule in one place: creation, partial edits, completion
toggles, deletion, drag-and-drop reordering, and the derived filtered
view and progress figures.  It never talks to a database or a template;
callers subscribe to its change events to persist or render results.

Key Concepts Demonstrated:
- Immutable value objects (frozen dataclasses) replaced on update
- ``str, Enum`` inheritance for JSON-friendly enumeration values
- Observer pattern for save-after-mutation persistence
- Restartable, lazy filtered views over a snapshot
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Errors
# -----------------------------------------------------------------------------

class TaskStoreError(Exception):
    """Base class for errors raised by ``TaskStore`` operations."""


class ValidationError(TaskStoreError, ValueError):
    """Raised when caller-supplied task data is invalid."""


class NotFoundError(TaskStoreError, LookupError):
    """Raised when an operation targets a task id that does not exist."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


# -----------------------------------------------------------------------------
# Enumerations
# -----------------------------------------------------------------------------

class TaskPriority(str, Enum):
    """Enumeration of task priority levels."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TaskCategory(str, Enum):
    """Enumeration of task categories."""

    WORK = "work"
    STUDY = "study"
    PERSONAL = "personal"


class StatusFilter(str, Enum):
    """Completion-state filter accepted by ``TaskStore.filtered_view``."""

    ALL = "all"
    COMPLETED = "completed"
    PENDING = "pending"


ALL = "all"


def _coerce_enum(enum_cls: type[Enum], value: Any, field_name: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        valid = [member.value for member in enum_cls]
        raise ValidationError(
            f"Invalid {field_name}. Must be one of: {valid}"
        ) from None


def _coerce_filter(enum_cls: type[Enum], value: Any, field_name: str) -> Any | None:
    """Return ``None`` for the "all" wildcard, otherwise the enum member."""
    if value is None or value == ALL:
        return None
    return _coerce_enum(enum_cls, value, field_name)


def _check_text(value: Any) -> str:
    """Return *value* trimmed; empty means "no text given"."""
    if not isinstance(value, str):
        raise ValidationError("'text' must be a string")
    return value.strip()


def _check_completed(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValidationError("'completed' must be a boolean")
    return value


def _check_due_date(value: Any) -> datetime | None:
    if value is not None and not isinstance(value, datetime):
        raise ValidationError("'due_date' must be a datetime or None")
    return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


# -----------------------------------------------------------------------------
# Value Objects
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class TaskDraft:
    """
    User-supplied fields for a new task.

    Everything except ``id`` and ``created_at``, which the store assigns.
    String values for ``priority`` and ``category`` are accepted and
    converted to their enum members.
    """

    text: str
    completed: bool = False
    priority: TaskPriority = TaskPriority.MEDIUM
    category: TaskCategory = TaskCategory.PERSONAL
    due_date: datetime | None = None


@dataclass(frozen=True)
class Task:
    """
    A single to-do item.

    Attributes:
        id: Opaque unique identifier assigned at creation.
        text: Non-empty, trimmed display text.
        completed: Whether the task has been done.
        priority: Importance level (see ``TaskPriority``).
        category: Grouping (see ``TaskCategory``).
        due_date: Optional deadline; ``None`` means no deadline.
        created_at: Creation timestamp (UTC), never changed afterwards.
    """

    id: str
    text: str
    completed: bool = False
    priority: TaskPriority = TaskPriority.MEDIUM
    category: TaskCategory = TaskCategory.PERSONAL
    due_date: datetime | None = None
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Serialise the task to a JSON-safe dictionary."""
        return {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "priority": self.priority.value,
            "category": self.category.value,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Task:
        """Rebuild a task from the output of ``to_dict``."""
        due_date = data.get("due_date")
        return cls(
            id=str(data["id"]),
            text=str(data["text"]),
            completed=bool(data.get("completed", False)),
            priority=TaskPriority(data.get("priority", TaskPriority.MEDIUM.value)),
            category=TaskCategory(data.get("category", TaskCategory.PERSONAL.value)),
            due_date=datetime.fromisoformat(due_date) if due_date else None,
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass(frozen=True)
class Progress:
    """Completion figures for the whole collection (unrounded percent)."""

    total: int
    completed_count: int
    percent: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "completed_count": self.completed_count,
            "percent": self.percent,
        }


class StoreEventKind(str, Enum):
    """Kinds of mutation reported to store subscribers."""

    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"
    CLEARED = "cleared"
    REORDERED = "reordered"


@dataclass(frozen=True)
class StoreEvent:
    """
    Notification emitted after a successful mutation.

    Attributes:
        kind: What happened.
        task: The affected task (the new version for ``UPDATED``, the
            deleted one for ``REMOVED``); ``None`` for bulk changes.
        changes: Field names that were written, for ``UPDATED`` events.
        order: Task ids in collection order after the mutation.
    """

    kind: StoreEventKind
    task: Task | None = None
    changes: Mapping[str, Any] = field(default_factory=dict)
    order: tuple[str, ...] = ()


Listener = Callable[[StoreEvent], None]


class TaskView:
    """
    Lazy, restartable filtered projection of a task snapshot.

    Each iteration walks the snapshot taken when the view was created,
    so later store mutations are not reflected and iterating twice yields
    the same tasks.
    """

    def __init__(self, tasks: tuple[Task, ...], predicate: Callable[[Task], bool]) -> None:
        self._tasks = tasks
        self._predicate = predicate

    def __iter__(self) -> Iterator[Task]:
        return (task for task in self._tasks if self._predicate(task))

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __repr__(self) -> str:
        return f"<TaskView {len(self)} of {len(self._tasks)}>"


# -----------------------------------------------------------------------------
# Store
# -----------------------------------------------------------------------------

EDITABLE_FIELDS = frozenset({"text", "completed", "priority", "category", "due_date"})
IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


class TaskStore:
    """
    Ordered collection of one user's tasks.

    New tasks are prepended, so without explicit reordering the list reads
    newest first.  All operations complete synchronously; subscribers are
    notified after each successful mutation, in registration order.

    Args:
        tasks: Initial tasks in display order (e.g. loaded from storage).
        clock: Returns the current time; used to stamp ``created_at``.
        id_factory: Returns a fresh task id.
    """

    def __init__(
        self,
        tasks: Iterable[Task] = (),
        *,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._tasks: list[Task] = list(tasks)
        ids = [task.id for task in self._tasks]
        if len(ids) != len(set(ids)):
            raise ValidationError("Duplicate task ids in initial collection")
        self._clock = clock
        self._id_factory = id_factory
        self._listeners: list[Listener] = []

    # ---- observation ----

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* for change events; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, kind: StoreEventKind, task: Task | None = None,
              changes: Mapping[str, Any] | None = None) -> None:
        event = StoreEvent(
            kind=kind,
            task=task,
            changes=dict(changes or {}),
            order=tuple(t.id for t in self._tasks),
        )
        for listener in list(self._listeners):
            listener(event)

    # ---- queries ----

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(tuple(self._tasks))

    def __contains__(self, task_id: object) -> bool:
        return self._index_of(task_id) is not None

    def snapshot(self) -> tuple[Task, ...]:
        """Return the tasks in collection order as an immutable tuple."""
        return tuple(self._tasks)

    def get(self, task_id: str) -> Task:
        index = self._index_of(task_id)
        if index is None:
            raise NotFoundError(task_id)
        return self._tasks[index]

    def _index_of(self, task_id: object) -> int | None:
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index
        return None

    # ---- mutations ----

    def add(self, draft: TaskDraft) -> Task:
        """
        Create a task from *draft* and put it at the front of the collection.

        Raises:
            ValidationError: If the trimmed text is empty or any field has
                the wrong type or an invalid enum value.
        """
        text = _check_text(draft.text)
        if not text:
            raise ValidationError("'text' is required")
        completed = _check_completed(draft.completed)
        priority = _coerce_enum(TaskPriority, draft.priority, "priority")
        category = _coerce_enum(TaskCategory, draft.category, "category")
        due_date = _check_due_date(draft.due_date)

        task_id = self._id_factory()
        while self._index_of(task_id) is not None:
            task_id = self._id_factory()

        task = Task(
            id=task_id,
            text=text,
            completed=completed,
            priority=priority,
            category=category,
            due_date=due_date,
            created_at=self._clock(),
        )
        self._tasks.insert(0, task)
        logger.debug("Task added id=%s", task.id)
        self._emit(StoreEventKind.ADDED, task)
        return task

    def update(self, task_id: str, partial: Mapping[str, Any]) -> Task:
        """
        Merge *partial* into the task with *task_id*.

        ``id`` and ``created_at`` are ignored if present.  A ``text`` value
        that is blank after trimming is dropped, leaving the previous text
        in place, while the remaining fields are still applied.

        Raises:
            NotFoundError: If no task has *task_id*.
            ValidationError: For unknown fields, wrongly typed values or
                invalid enum values.
        """
        index = self._index_of(task_id)
        if index is None:
            raise NotFoundError(task_id)

        unknown = set(partial) - EDITABLE_FIELDS - IMMUTABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown task fields: {sorted(unknown)}")

        changes: dict[str, Any] = {}
        if "text" in partial:
            text = _check_text(partial["text"])
            if text:
                changes["text"] = text
        if "completed" in partial:
            changes["completed"] = _check_completed(partial["completed"])
        if "priority" in partial:
            changes["priority"] = _coerce_enum(TaskPriority, partial["priority"], "priority")
        if "category" in partial:
            changes["category"] = _coerce_enum(TaskCategory, partial["category"], "category")
        if "due_date" in partial:
            changes["due_date"] = _check_due_date(partial["due_date"])

        task = replace(self._tasks[index], **changes)
        self._tasks[index] = task
        self._emit(StoreEventKind.UPDATED, task, changes)
        return task

    def toggle(self, task_id: str) -> Task:
        """Flip the completion flag of the task with *task_id*."""
        current = self.get(task_id)
        return self.update(task_id, {"completed": not current.completed})

    def remove(self, task_id: str) -> bool:
        """Delete the task with *task_id*; returns ``False`` if it was absent."""
        index = self._index_of(task_id)
        if index is None:
            return False
        task = self._tasks.pop(index)
        self._emit(StoreEventKind.REMOVED, task)
        return True

    def clear(self) -> int:
        """Remove every task; returns how many were removed."""
        count = len(self._tasks)
        self._tasks.clear()
        self._emit(StoreEventKind.CLEARED)
        return count

    def reorder(self, dragged_id: str, target_id: str) -> bool:
        """
        Move the dragged task to the target task's current index.

        Everything between the two positions shifts by one; all other
        relative orderings are kept.  Returns ``False`` without changing
        anything when either id is missing or both ids are equal.
        """
        if dragged_id == target_id:
            return False
        dragged_index = self._index_of(dragged_id)
        target_index = self._index_of(target_id)
        if dragged_index is None or target_index is None:
            return False

        task = self._tasks.pop(dragged_index)
        self._tasks.insert(target_index, task)
        self._emit(StoreEventKind.REORDERED, task)
        return True

    # ---- derived views ----

    def filtered_view(
        self,
        status: StatusFilter | str = StatusFilter.ALL,
        category: TaskCategory | str = ALL,
        priority: TaskPriority | str = ALL,
        search: str = "",
    ) -> TaskView:
        """
        Return the tasks matching every given filter, in collection order.

        Args:
            status: ``all``, ``completed`` or ``pending``.
            category: ``all`` or a ``TaskCategory`` value.
            priority: ``all`` or a ``TaskPriority`` value.
            search: Case-insensitive substring of ``text``; empty matches all.

        Raises:
            ValidationError: If a filter value is not recognised.
        """
        status_filter = _coerce_enum(StatusFilter, status or ALL, "status")
        category_filter = _coerce_filter(TaskCategory, category, "category")
        priority_filter = _coerce_filter(TaskPriority, priority, "priority")
        needle = (search or "").lower()

        def matches(task: Task) -> bool:
            if status_filter is StatusFilter.COMPLETED and not task.completed:
                return False
            if status_filter is StatusFilter.PENDING and task.completed:
                return False
            if category_filter is not None and task.category != category_filter:
                return False
            if priority_filter is not None and task.priority != priority_filter:
                return False
            return not needle or needle in task.text.lower()

        return TaskView(self.snapshot(), matches)

    def progress(self) -> Progress:
        total = len(self._tasks)
        completed_count = sum(1 for task in self._tasks if task.completed)
        percent = completed_count / total * 100 if total > 0 else 0
        return Progress(total=total, completed_count=completed_count, percent=percent)

    def __repr__(self) -> str:
        return f"<TaskStore {len(self._tasks)} tasks>"
