"""
Persistence collaborators for ``TaskStore``.

Two interchangeable backends keep a user's collection between requests:

- ``SqlTaskRepository`` stores one row per task in the application
  database (via Flask-SQLAlchemy), with a ``position`` column for order.
- ``JsonSnapshotStore`` writes the whole collection to one JSON file per
  user, loaded once and rewritten after every mutation.

``open_store`` ties them to the request cycle: it serialises work per
owner, loads the collection into a fresh ``TaskStore``, subscribes the
matching sync listener so every mutation is written through, and commits
or rolls back as a unit.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from flask import current_app
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from todo_app import db
from todo_app.models import TaskRecord, ensure_utc
from todo_app.store import (
    StoreEvent,
    StoreEventKind,
    Task,
    TaskCategory,
    TaskPriority,
    TaskStore,
    TaskStoreError,
)

logger = logging.getLogger(__name__)

SQL_BACKEND = "sql"
SNAPSHOT_BACKEND = "snapshot"
SNAPSHOT_VERSION = 1


# -----------------------------------------------------------------------------
# SQL Repository
# -----------------------------------------------------------------------------

class SqlTaskRepository:
    """
    Owner-scoped task table access.

    Every method takes the owner id and filters on it, so one user can
    never read or change another user's rows.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def _get(self, task_id: str, owner_id: int) -> TaskRecord | None:
        return self._session.scalar(
            select(TaskRecord).where(
                TaskRecord.id == task_id, TaskRecord.owner_id == owner_id
            )
        )

    def list(self, owner_id: int) -> list[Task]:
        """Return the owner's tasks in collection order."""
        records = self._session.scalars(
            select(TaskRecord)
            .where(TaskRecord.owner_id == owner_id)
            .order_by(TaskRecord.position.asc(), TaskRecord.created_at.desc())
        ).all()
        return [record.to_task() for record in records]

    def create(self, owner_id: int, task: Task) -> Task:
        """Insert *task* in front of the owner's existing tasks."""
        lowest = self._session.scalar(
            select(func.min(TaskRecord.position)).where(TaskRecord.owner_id == owner_id)
        )
        position = 0 if lowest is None else lowest - 1
        self._session.add(TaskRecord.from_task(task, owner_id, position))
        self._session.flush()
        return task

    def update(self, task_id: str, owner_id: int, partial: Mapping[str, Any]) -> Task | None:
        """Write the given fields; returns ``None`` if the row is missing."""
        record = self._get(task_id, owner_id)
        if record is None:
            return None
        for name, value in partial.items():
            if name in ("id", "created_at", "owner_id", "position"):
                continue
            if name == "priority":
                value = TaskPriority(value).value
            elif name == "category":
                value = TaskCategory(value).value
            elif name == "due_date" and value is not None:
                value = ensure_utc(value)
            setattr(record, name, value)
        self._session.flush()
        return record.to_task()

    def delete(self, task_id: str, owner_id: int) -> None:
        self._session.execute(
            delete(TaskRecord).where(
                TaskRecord.id == task_id, TaskRecord.owner_id == owner_id
            )
        )

    def delete_all(self, owner_id: int) -> None:
        self._session.execute(delete(TaskRecord).where(TaskRecord.owner_id == owner_id))

    def save_order(self, owner_id: int, task_ids: Sequence[str]) -> None:
        """Renumber positions so the rows read back in *task_ids* order."""
        records = {
            record.id: record
            for record in self._session.scalars(
                select(TaskRecord).where(TaskRecord.owner_id == owner_id)
            )
        }
        for position, task_id in enumerate(task_ids):
            record = records.get(task_id)
            if record is not None:
                record.position = position
        self._session.flush()


class RepositorySync:
    """Store listener that mirrors each mutation into a ``SqlTaskRepository``."""

    def __init__(self, repository: SqlTaskRepository, owner_id: int) -> None:
        self.repository = repository
        self.owner_id = owner_id

    def __call__(self, event: StoreEvent) -> None:
        if event.kind is StoreEventKind.ADDED:
            self.repository.create(self.owner_id, event.task)
        elif event.kind is StoreEventKind.UPDATED:
            self.repository.update(event.task.id, self.owner_id, event.changes)
        elif event.kind is StoreEventKind.REMOVED:
            self.repository.delete(event.task.id, self.owner_id)
        elif event.kind is StoreEventKind.CLEARED:
            self.repository.delete_all(self.owner_id)
        elif event.kind is StoreEventKind.REORDERED:
            self.repository.save_order(self.owner_id, event.order)


# -----------------------------------------------------------------------------
# JSON Snapshot
# -----------------------------------------------------------------------------

class SnapshotError(Exception):
    """Raised when a snapshot file exists but cannot be parsed."""


class JsonSnapshotStore:
    """
    Whole-collection JSON file.

    Timestamps are written with ``datetime.isoformat`` (offset and
    microseconds included) so ``load`` returns exactly what was saved.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> list[Task]:
        """Read the snapshot; a missing file is an empty collection."""
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, list):
                raw_tasks = data
            else:
                raw_tasks = data.get("tasks", [])
            return [Task.from_dict(raw) for raw in raw_tasks]
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.exception("Unreadable task snapshot %s", self.path)
            raise SnapshotError(f"Task snapshot {self.path} is corrupt") from exc

    def save(self, tasks: Iterable[Task]) -> None:
        """Atomically replace the snapshot with *tasks*."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": SNAPSHOT_VERSION,
            "tasks": [task.to_dict() for task in tasks],
        }
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=4)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class SnapshotSync:
    """Store listener that rewrites the snapshot after every mutation."""

    def __init__(self, snapshot: JsonSnapshotStore, store: TaskStore) -> None:
        self.snapshot = snapshot
        self.store = store

    def __call__(self, event: StoreEvent) -> None:
        self.snapshot.save(self.store.snapshot())


def snapshot_path(owner_id: int) -> Path:
    return Path(current_app.config["SNAPSHOT_DIR"]) / f"tasks-{int(owner_id)}.json"


# -----------------------------------------------------------------------------
# Request Integration
# -----------------------------------------------------------------------------

class OwnerLocks:
    """One lock per owner, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}

    def get(self, owner_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(owner_id)
            if lock is None:
                lock = self._locks[owner_id] = threading.Lock()
            return lock


owner_locks = OwnerLocks()


@contextmanager
def open_store(owner_id: int) -> Iterator[TaskStore]:
    """
    Yield the owner's ``TaskStore`` with write-through persistence.

    Requests for the same owner run one at a time.  With the SQL backend
    all writes made inside the block are committed together on exit, or
    rolled back if the block raises; the store itself is discarded either
    way and reloaded by the next request.

    Args:
        owner_id: Id of the authenticated user.

    Yields:
        A ``TaskStore`` loaded with the owner's tasks.
    """
    backend = current_app.config.get("TASK_BACKEND", SQL_BACKEND)
    logger.debug("Opening task store owner=%s backend=%s", owner_id, backend)
    with owner_locks.get(owner_id):
        if backend == SNAPSHOT_BACKEND:
            snapshot = JsonSnapshotStore(snapshot_path(owner_id))
            store = TaskStore(snapshot.load())
            store.subscribe(SnapshotSync(snapshot, store))
            try:
                yield store
            except OSError:
                logger.exception("Snapshot write failed for owner=%s", owner_id)
                raise
            return

        if backend != SQL_BACKEND:
            raise RuntimeError(f"Unknown TASK_BACKEND: {backend!r}")

        repository = SqlTaskRepository(db.session)
        store = TaskStore(repository.list(owner_id))
        store.subscribe(RepositorySync(repository, owner_id))
        try:
            yield store
            db.session.commit()
        except TaskStoreError:
            db.session.rollback()
            raise
        except Exception:
            db.session.rollback()
            logger.exception("Task persistence failed for owner=%s; rolled back", owner_id)
            raise
