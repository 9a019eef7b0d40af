"""
Account API endpoints.

Endpoints:
    POST /api/auth/register  -- Create a new user account.
    POST /api/auth/login     -- Authenticate and receive a JWT.
    GET  /api/auth/verify    -- Validate a Bearer token and return its identity.

Registration and login logic is shared with the HTML views through
``register_user`` and ``authenticate``.
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint, Response, g, jsonify, request
from sqlalchemy import select

from todo_app import db
from todo_app.auth import issue_token_for, require_auth
from todo_app.models import User

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)

USERNAME_MAX_LENGTH = 80
EMAIL_MAX_LENGTH = 120
PASSWORD_MIN_LENGTH = 6


class AccountError(Exception):
    """Registration or login failure with the HTTP status it maps to."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------

def _json_error(message: str, status_code: int) -> tuple[Response, int]:
    return jsonify({"error": message}), status_code


def _validate_required_fields(data: dict[str, Any], required_fields: list[str]) -> str | None:
    """Return an error for the first missing or blank field, else ``None``."""
    for field in required_fields:
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            return f"'{field}' is required"
    return None


def register_user(username: str, email: str, password: str) -> User:
    """
    Create and persist a new account.

    Raises:
        AccountError: 400 for invalid input, 409 for a taken username/email.
    """
    username = username.strip()
    email = email.strip()

    if len(username) > USERNAME_MAX_LENGTH:
        raise AccountError(f"username must be {USERNAME_MAX_LENGTH} characters or less", 400)
    if len(email) > EMAIL_MAX_LENGTH:
        raise AccountError(f"email must be {EMAIL_MAX_LENGTH} characters or less", 400)
    if "@" not in email:
        raise AccountError("email must be a valid email address", 400)
    if len(password) < PASSWORD_MIN_LENGTH:
        raise AccountError(
            f"password must be at least {PASSWORD_MIN_LENGTH} characters", 400
        )

    if db.session.scalar(select(User).where(User.username == username)):
        raise AccountError("Username already exists", 409)
    if db.session.scalar(select(User).where(User.email == email)):
        raise AccountError("Email already exists", 409)

    user = User(username=username, email=email)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    logger.info("Registered user id=%s username=%s", user.id, user.username)
    return user


def authenticate(username: str, password: str) -> User:
    """
    Return the user matching the credentials.

    Raises:
        AccountError: 401 with a deliberately vague message on mismatch.
    """
    user = db.session.scalar(select(User).where(User.username == username.strip()))
    if not user or not user.check_password(password):
        logger.warning("Failed login for username=%s", username)
        raise AccountError("Invalid username or password", 401)
    return user


# -----------------------------------------------------------------------------
# API Endpoints
# -----------------------------------------------------------------------------

@auth_bp.route("/register", methods=["POST"])
def register() -> tuple[Response, int]:
    """
    Register a new user account.

    Request Body (JSON):
        username, email, password (all required)

    Returns:
        201 with the created user, 400 on invalid input, 409 on duplicates.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _json_error("Request body must be JSON", 400)
    missing = _validate_required_fields(data, ["username", "email", "password"])
    if missing:
        return _json_error(missing, 400)

    try:
        user = register_user(data["username"], data["email"], data["password"])
    except AccountError as exc:
        return _json_error(exc.message, exc.status_code)

    return jsonify({"user": user.to_dict()}), 201


@auth_bp.route("/login", methods=["POST"])
def login() -> tuple[Response, int]:
    """
    Authenticate a user and issue a JWT.

    Returns:
        200 with ``token`` and ``user``, 400 on missing fields,
        401 on bad credentials.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _json_error("Request body must be JSON", 400)
    missing = _validate_required_fields(data, ["username", "password"])
    if missing:
        return _json_error(missing, 400)

    try:
        user = authenticate(data["username"], data["password"])
    except AccountError as exc:
        return _json_error(exc.message, exc.status_code)

    token = issue_token_for(user.id, user.username)
    return jsonify({"token": token, "user": user.to_dict()}), 200


@auth_bp.route("/verify", methods=["GET"])
@require_auth
def verify() -> tuple[Response, int]:
    """Return the identity carried by a valid Bearer token."""
    return jsonify({"user_id": g.user_id, "username": g.username}), 200
