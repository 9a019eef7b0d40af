"""
REST API endpoints for Task management.

Every task endpoint requires a Bearer token and operates only on the
caller's own collection.  All endpoints return JSON responses.

Endpoints:
    GET    /api/health              - Health check
    GET    /api/tasks               - Filtered list (status, category, priority, q)
    GET    /api/tasks/progress      - Completion figures
    GET    /api/tasks/<id>          - Get a single task by ID
    POST   /api/tasks               - Create a new task (prepended)
    PUT    /api/tasks/<id>          - Merge fields into a task
    PATCH  /api/tasks/<id>          - Same as PUT
    POST   /api/tasks/<id>/toggle   - Flip completion
    DELETE /api/tasks/<id>          - Delete a task (idempotent)
    DELETE /api/tasks               - Delete every task
    POST   /api/tasks/reorder       - Move one task onto another's position
"""

import logging
import os
from datetime import datetime
from typing import Any

from flask import Blueprint, Response, g, jsonify, request
from werkzeug.exceptions import HTTPException

from todo_app.auth import require_auth
from todo_app.models import ensure_utc
from todo_app.persistence import open_store
from todo_app.store import NotFoundError, TaskDraft, ValidationError

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)

TEXT_MAX_LENGTH = 500
TASK_FIELDS = ("text", "completed", "priority", "category", "due_date")


# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------

def parse_due_date(date_string: str | None) -> datetime | None:
    """
    Parse due date string to datetime object.

    Args:
        date_string: ISO format date string or None.

    Returns:
        datetime object or None.

    Raises:
        ValidationError: If the string is not ISO-8601.
    """
    if not date_string:
        return None
    try:
        parsed = datetime.fromisoformat(str(date_string).replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        raise ValidationError(
            "Invalid due_date format. Use ISO format (YYYY-MM-DDTHH:MM:SS)"
        ) from None
    return ensure_utc(parsed)


def parse_task_fields(data: dict[str, Any]) -> dict[str, Any]:
    """
    Pick and convert the task fields present in a request body.

    Keys other than the editable task fields (``id``, ``created_at``,
    ownership or anything else a client sends) are dropped.

    Raises:
        ValidationError: For wrongly typed values or over-long text.
    """
    fields = {name: data[name] for name in TASK_FIELDS if name in data}
    if "text" in fields:
        if not isinstance(fields["text"], str):
            raise ValidationError("'text' must be a string")
        if len(fields["text"].strip()) > TEXT_MAX_LENGTH:
            raise ValidationError(f"Text must be {TEXT_MAX_LENGTH} characters or less")
    if "completed" in fields and not isinstance(fields["completed"], bool):
        raise ValidationError("'completed' must be a boolean")
    if "due_date" in fields:
        fields["due_date"] = parse_due_date(fields["due_date"])
    return fields


def _json_error(message: str, status_code: int) -> tuple[Response, int]:
    return jsonify({"error": message}), status_code


# -----------------------------------------------------------------------------
# API Endpoints
# -----------------------------------------------------------------------------

@api_bp.route("/health", methods=["GET"])
def health_check() -> tuple[Response, int]:
    """Health check endpoint for deployment verification."""
    return jsonify({
        "status": "healthy",
        "environment": os.getenv("ENVIRONMENT", "unknown"),
        "version": os.getenv("APP_VERSION", "unknown")
    }), 200


@api_bp.route("/tasks", methods=["GET"])
@require_auth
def get_tasks() -> tuple[Response, int]:
    """
    List the caller's tasks in collection order, optionally filtered.

    Query Parameters:
        status: all, completed or pending
        category: all, work, study or personal
        priority: all, high, medium or low
        q: case-insensitive text search

    Returns:
        JSON with ``tasks``, ``count`` (matches) and ``total`` (collection size).
    """
    logger.info("GET /api/tasks - Fetching tasks for user %s", g.user_id)

    try:
        with open_store(g.user_id) as store:
            view = store.filtered_view(
                request.args.get("status", "all"),
                request.args.get("category", "all"),
                request.args.get("priority", "all"),
                request.args.get("q", ""),
            )
            tasks = [task.to_dict() for task in view]
            total = len(store)
    except ValidationError as exc:
        logger.warning("Invalid filter: %s", exc)
        return _json_error(str(exc), 400)

    return jsonify({"tasks": tasks, "count": len(tasks), "total": total}), 200


@api_bp.route("/tasks/progress", methods=["GET"])
@require_auth
def get_progress() -> tuple[Response, int]:
    """Return ``total``, ``completed_count`` and unrounded ``percent``."""
    with open_store(g.user_id) as store:
        progress = store.progress()
    return jsonify(progress.to_dict()), 200


@api_bp.route("/tasks/<task_id>", methods=["GET"])
@require_auth
def get_task(task_id: str) -> tuple[Response, int]:
    """Get a single task by ID, or 404."""
    logger.info("GET /api/tasks/%s - Fetching task", task_id)

    try:
        with open_store(g.user_id) as store:
            task = store.get(task_id)
    except NotFoundError:
        logger.warning("Task %s not found", task_id)
        return _json_error("Task not found", 404)

    return jsonify(task.to_dict()), 200


@api_bp.route("/tasks", methods=["POST"])
@require_auth
def create_task() -> tuple[Response, int]:
    """
    Create a new task at the front of the collection.

    Request Body (JSON):
        text: Task text (required, non-blank)
        completed: bool (optional, default false)
        priority: high, medium or low (optional, default medium)
        category: work, study or personal (optional, default personal)
        due_date: ISO-8601 timestamp (optional)

    Returns:
        201 with the created task, or 400 if validation fails.
    """
    logger.info("POST /api/tasks - Creating new task")

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _json_error("Request body must be JSON", 400)

    try:
        fields = parse_task_fields(data)
        provided = {name: value for name, value in fields.items() if value is not None}
        draft = TaskDraft(**{"text": "", **provided})
        with open_store(g.user_id) as store:
            task = store.add(draft)
    except ValidationError as exc:
        logger.warning("Validation failed: %s", exc)
        return _json_error(str(exc), 400)

    logger.info("Created task with ID: %s", task.id)
    return jsonify(task.to_dict()), 201


@api_bp.route("/tasks/<task_id>", methods=["PUT", "PATCH"])
@require_auth
def update_task(task_id: str) -> tuple[Response, int]:
    """
    Merge the given fields into a task.

    Absent fields are left alone; a blank ``text`` keeps the old text.

    Returns:
        200 with the updated task, 404 if missing, 400 if invalid.
    """
    logger.info("%s /api/tasks/%s - Updating task", request.method, task_id)

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _json_error("Request body must be JSON", 400)

    try:
        fields = parse_task_fields(data)
        with open_store(g.user_id) as store:
            task = store.update(task_id, fields)
    except NotFoundError:
        logger.warning("Task %s not found", task_id)
        return _json_error("Task not found", 404)
    except ValidationError as exc:
        logger.warning("Validation failed: %s", exc)
        return _json_error(str(exc), 400)

    logger.info("Updated task %s", task_id)
    return jsonify(task.to_dict()), 200


@api_bp.route("/tasks/<task_id>/toggle", methods=["POST"])
@require_auth
def toggle_task(task_id: str) -> tuple[Response, int]:
    """Flip a task's completion flag; 404 if missing."""
    logger.info("POST /api/tasks/%s/toggle - Toggling completion", task_id)

    try:
        with open_store(g.user_id) as store:
            task = store.toggle(task_id)
    except NotFoundError:
        logger.warning("Task %s not found", task_id)
        return _json_error("Task not found", 404)

    return jsonify(task.to_dict()), 200


@api_bp.route("/tasks/<task_id>", methods=["DELETE"])
@require_auth
def delete_task(task_id: str) -> tuple[Response, int]:
    """
    Delete a task.

    Deleting a task that does not exist succeeds with ``deleted: false``,
    so retries are harmless.
    """
    logger.info("DELETE /api/tasks/%s - Deleting task", task_id)

    with open_store(g.user_id) as store:
        deleted = store.remove(task_id)

    return jsonify({"deleted": deleted}), 200


@api_bp.route("/tasks", methods=["DELETE"])
@require_auth
def clear_tasks() -> tuple[Response, int]:
    """Delete every task of the caller."""
    logger.info("DELETE /api/tasks - Clearing all tasks for user %s", g.user_id)

    with open_store(g.user_id) as store:
        count = store.clear()

    return jsonify({"deleted": count}), 200


@api_bp.route("/tasks/reorder", methods=["POST"])
@require_auth
def reorder_tasks() -> tuple[Response, int]:
    """
    Move ``dragged_id`` to the position currently held by ``target_id``.

    Request Body (JSON):
        dragged_id: Task being moved (required)
        target_id: Task it was dropped on (required)

    Returns:
        200 with ``moved`` and the resulting ``order`` of ids.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _json_error("Request body must be JSON", 400)

    dragged_id = data.get("dragged_id")
    target_id = data.get("target_id")
    if not isinstance(dragged_id, str) or not isinstance(target_id, str):
        return _json_error("'dragged_id' and 'target_id' are required", 400)

    with open_store(g.user_id) as store:
        moved = store.reorder(dragged_id, target_id)
        order = [task.id for task in store]

    logger.info("Reorder %s -> %s moved=%s", dragged_id, target_id, moved)
    return jsonify({"moved": moved, "order": order}), 200


# -----------------------------------------------------------------------------
# Error Handlers
# -----------------------------------------------------------------------------

@api_bp.errorhandler(400)
def bad_request(error: Exception) -> tuple[Response, int]:
    """Handle 400 Bad Request errors."""
    return jsonify({"error": "Bad request"}), 400


# Registered app-wide; JSON bodies only for /api paths.

@api_bp.app_errorhandler(404)
def not_found(error: HTTPException) -> tuple[Response, int] | HTTPException:
    """Handle 404 Not Found errors."""
    if not request.path.startswith("/api/"):
        return error
    return jsonify({"error": "Resource not found"}), 404


@api_bp.app_errorhandler(405)
def method_not_allowed(error: HTTPException) -> tuple[Response, int] | HTTPException:
    """Handle 405 Method Not Allowed errors."""
    if not request.path.startswith("/api/"):
        return error
    return jsonify({"error": "Method not allowed"}), 405


@api_bp.errorhandler(500)
def internal_error(error: Exception) -> tuple[Response, int]:
    """Handle 500 Internal Server errors."""
    logger.error("Internal server error: %s", error)
    return jsonify({"error": "Internal server error"}), 500
