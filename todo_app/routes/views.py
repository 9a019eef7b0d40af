"""
HTML view routes for the Task Manager web interface.

This module provides routes that render HTML templates for the
web-based user interface. Every task page requires a signed-in user
(token kept in the session cookie) and works on that user's collection.

Routes:
    GET/POST /login                  - Sign-in form
    GET/POST /register               - Account creation form
    POST     /logout                 - Sign out
    POST     /theme                  - Toggle light/dark theme
    GET      /                       - Task list with filters, search, progress
    POST     /tasks                  - Add a task
    GET      /tasks/<id>/edit        - Edit form
    POST     /tasks/<id>/update      - Save edits
    POST     /tasks/<id>/toggle      - Flip completion
    POST     /tasks/<id>/delete      - Delete a task
    POST     /tasks/<id>/move        - Drop a task onto another one
    POST     /tasks/clear            - Delete every task
"""

import logging
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from flask import (
    Blueprint,
    abort,
    current_app,
    flash,
    g,
    make_response,
    redirect,
    render_template,
    request,
    session,
    url_for,
)

from todo_app.auth import SESSION_TOKEN_KEY, issue_token_for, login_required
from todo_app.due_dates import combine_due
from todo_app.persistence import open_store
from todo_app.routes.auth import AccountError, authenticate, register_user
from todo_app.store import (
    ALL,
    NotFoundError,
    StatusFilter,
    TaskCategory,
    TaskDraft,
    TaskPriority,
    ValidationError,
)

logger = logging.getLogger(__name__)

views_bp = Blueprint("views", __name__)

THEME_COOKIE = "theme"
THEMES = ("light", "dark")
FILTER_ARGS = ("status", "category", "priority", "q")
CATEGORY_ICONS = {
    TaskCategory.WORK.value: "\U0001F4BC",
    TaskCategory.STUDY.value: "\U0001F4DA",
    TaskCategory.PERSONAL.value: "\U0001F3E0",
}


# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------

def display_timezone() -> tzinfo:
    """Timezone used to read form dates and label deadlines."""
    name = current_app.config.get("DISPLAY_TIMEZONE", "UTC")
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def current_filters(source) -> dict[str, str]:
    """Return the non-default list filters found in *source* (args or form)."""
    filters = {}
    for name in FILTER_ARGS:
        value = (source.get(name) or "").strip()
        if value and value != ALL:
            filters[name] = value
    return filters


def back_to_index():
    """Redirect to the list, keeping the filters the form was posted from."""
    return redirect(url_for("views.index", **current_filters(request.form)))


def read_due_date() -> datetime | None:
    """
    Build the due date from the ``due_date`` and ``due_time`` form fields.

    Raises:
        ValidationError: If the date or time is malformed.
    """
    try:
        return combine_due(
            request.form.get("due_date"),
            request.form.get("due_time"),
            display_timezone(),
        )
    except ValueError:
        raise ValidationError("Invalid date format") from None


def current_theme() -> str:
    theme = request.cookies.get(THEME_COOKIE, "light")
    return theme if theme in THEMES else "light"


@views_bp.app_context_processor
def inject_theme():
    return {"theme": current_theme(), "category_icons": CATEGORY_ICONS}


# -----------------------------------------------------------------------------
# Authentication Routes
# -----------------------------------------------------------------------------

@views_bp.route("/login", methods=["GET", "POST"])
def login():
    """Render the sign-in form and handle its submission."""
    if request.method == "GET":
        return render_template("login.html", next=request.args.get("next", ""))

    username = request.form.get("username", "")
    password = request.form.get("password", "")
    if not username.strip() or not password:
        flash("Username and password are required", "error")
        return redirect(url_for("views.login"))

    try:
        user = authenticate(username, password)
    except AccountError as exc:
        flash(exc.message, "error")
        return redirect(url_for("views.login"))

    session.clear()
    session[SESSION_TOKEN_KEY] = issue_token_for(user.id, user.username)
    flash(f"Welcome back, {user.username}", "success")

    next_path = request.form.get("next", "")
    if next_path.startswith("/") and not next_path.startswith("//"):
        return redirect(next_path)
    return redirect(url_for("views.index"))


@views_bp.route("/register", methods=["GET", "POST"])
def register():
    """Render the sign-up form and handle its submission."""
    if request.method == "GET":
        return render_template("register.html")

    username = request.form.get("username", "")
    email = request.form.get("email", "")
    password = request.form.get("password", "")
    if not username.strip() or not email.strip() or not password:
        flash("All fields are required", "error")
        return redirect(url_for("views.register"))

    try:
        register_user(username, email, password)
    except AccountError as exc:
        flash(exc.message, "error")
        return redirect(url_for("views.register"))

    flash("Account created. Please sign in.", "success")
    return redirect(url_for("views.login"))


@views_bp.route("/logout", methods=["POST"])
def logout():
    """Forget the session token."""
    session.clear()
    flash("Signed out", "success")
    return redirect(url_for("views.login"))


@views_bp.route("/theme", methods=["POST"])
def toggle_theme():
    """Switch between light and dark and remember the choice in a cookie."""
    new_theme = "light" if current_theme() == "dark" else "dark"
    target = request.form.get("next", "")
    if not target.startswith("/") or target.startswith("//"):
        target = url_for("views.index")
    response = make_response(redirect(target))
    response.set_cookie(
        THEME_COOKIE, new_theme, max_age=365 * 24 * 3600, samesite="Lax"
    )
    return response


# -----------------------------------------------------------------------------
# Task Routes
# -----------------------------------------------------------------------------

@views_bp.route("/")
@login_required
def index():
    """
    Render the task list page.

    Query Parameters:
        status: all, completed or pending
        category: all or a category
        priority: all or a priority
        q: search text

    Returns:
        Rendered index.html template with task list and progress.
    """
    logger.info("GET / - Rendering task list for user %s", g.user_id)

    status_filter = request.args.get("status", ALL) or ALL
    category_filter = request.args.get("category", ALL) or ALL
    priority_filter = request.args.get("priority", ALL) or ALL
    search = request.args.get("q", "")

    with open_store(g.user_id) as store:
        try:
            tasks = list(store.filtered_view(
                status_filter, category_filter, priority_filter, search
            ))
        except ValidationError as exc:
            flash(str(exc), "error")
            return redirect(url_for("views.index"))
        progress = store.progress()
        total = len(store)

    return render_template(
        "index.html",
        tasks=tasks,
        total=total,
        progress=progress,
        username=g.username,
        now=datetime.now(display_timezone()),
        statuses=StatusFilter,
        categories=TaskCategory,
        priorities=TaskPriority,
        current_status=status_filter,
        current_category=category_filter,
        current_priority=priority_filter,
        search=search,
        filters=current_filters(request.args),
    )


@views_bp.route("/tasks", methods=["POST"])
@login_required
def create_task():
    """
    Handle the add-task form.

    Form Data:
        text: Task text (required)
        priority, category: Enum values
        due_date: YYYY-MM-DD (optional)
        due_time: HH:MM (optional, needs a date)
    """
    logger.info("POST /tasks - Creating task from form")

    try:
        draft = TaskDraft(
            text=request.form.get("text", ""),
            priority=request.form.get("priority", TaskPriority.MEDIUM.value),
            category=request.form.get("category", TaskCategory.PERSONAL.value),
            due_date=read_due_date(),
        )
        with open_store(g.user_id) as store:
            task = store.add(draft)
    except ValidationError as exc:
        flash(str(exc).replace("'text'", "Task text"), "error")
        return back_to_index()

    flash("Task added", "success")
    logger.info("Created task %s from form", task.id)
    return back_to_index()


@views_bp.route("/tasks/<task_id>/edit")
@login_required
def edit_task(task_id: str):
    """Render the edit form for one task, or 404."""
    try:
        with open_store(g.user_id) as store:
            task = store.get(task_id)
    except NotFoundError:
        abort(404)

    due_local = task.due_date.astimezone(display_timezone()) if task.due_date else None
    return render_template(
        "task_form.html",
        task=task,
        due_local=due_local,
        categories=TaskCategory,
        priorities=TaskPriority,
        filters=current_filters(request.args),
    )


@views_bp.route("/tasks/<task_id>/update", methods=["POST"])
@login_required
def update_task(task_id: str):
    """
    Save the edit form.

    A blank text keeps the previous text; the other fields are applied.
    """
    logger.info("POST /tasks/%s/update - Updating task from form", task_id)

    try:
        partial = {
            "text": request.form.get("text", ""),
            "priority": request.form.get("priority"),
            "category": request.form.get("category"),
            "due_date": read_due_date(),
        }
        partial = {
            name: value for name, value in partial.items()
            if value is not None or name == "due_date"
        }
        with open_store(g.user_id) as store:
            store.update(task_id, partial)
    except NotFoundError:
        abort(404)
    except ValidationError as exc:
        flash(str(exc), "error")
        return redirect(url_for(
            "views.edit_task", task_id=task_id, **current_filters(request.form)
        ))

    flash("Task updated", "success")
    return back_to_index()


@views_bp.route("/tasks/<task_id>/toggle", methods=["POST"])
@login_required
def toggle_task(task_id: str):
    """Flip completion from the list checkbox."""
    try:
        with open_store(g.user_id) as store:
            store.toggle(task_id)
    except NotFoundError:
        flash("Task not found", "error")
    return back_to_index()


@views_bp.route("/tasks/<task_id>/delete", methods=["POST"])
@login_required
def delete_task(task_id: str):
    """Delete one task; deleting a missing task is not an error."""
    logger.info("POST /tasks/%s/delete - Deleting task", task_id)

    with open_store(g.user_id) as store:
        store.remove(task_id)

    flash("Task deleted", "success")
    return back_to_index()


@views_bp.route("/tasks/<task_id>/move", methods=["POST"])
@login_required
def move_task(task_id: str):
    """Drop *task_id* onto ``target_id`` (drag-and-drop or the move menu)."""
    target_id = request.form.get("target_id", "")

    with open_store(g.user_id) as store:
        moved = store.reorder(task_id, target_id)

    logger.info("Move %s -> %s moved=%s", task_id, target_id, moved)
    return back_to_index()


@views_bp.route("/tasks/clear", methods=["POST"])
@login_required
def clear_tasks():
    """Delete every task of the signed-in user."""
    with open_store(g.user_id) as store:
        count = store.clear()

    flash(f"Cleared {count} task{'s' if count != 1 else ''}", "success")
    return redirect(url_for("views.index"))
