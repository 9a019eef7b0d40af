"""
JWT helpers for the Task Manager.

Issues and verifies the bearer tokens that identify a user, and provides
two decorators that guard routes:

- ``require_auth`` for JSON endpoints (``Authorization: Bearer <token>``);
- ``login_required`` for HTML pages (token kept in the session cookie).

Token structure (claims):
    - ``user_id``  -- integer primary key of the authenticated user.
    - ``username`` -- display name, carried so pages can greet the user.
    - ``iat``      -- issued-at timestamp (UTC epoch seconds).
    - ``exp``      -- expiration timestamp (UTC epoch seconds).

Tokens are signed with HS256 using ``JWT_SECRET_KEY``; issuer and
verifier are the same application.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any

import jwt
from flask import (
    Response,
    current_app,
    flash,
    g,
    jsonify,
    redirect,
    request,
    session,
    url_for,
)

ALGORITHM = "HS256"
REQUIRED_TOKEN_CLAIMS = ["user_id", "username", "iat", "exp"]
SESSION_TOKEN_KEY = "auth_token"


def create_token(user_id: int, username: str, secret_key: str, expiry_hours: int) -> str:
    """
    Create a signed JWT containing the canonical auth claims.

    Args:
        user_id: Primary key of the authenticated user.  Must be positive.
        username: Display name of the user.  Must be non-blank.
        secret_key: HMAC signing key.
        expiry_hours: Hours from now until the token expires.

    Returns:
        A compact JWS string suitable for an ``Authorization`` header.

    Raises:
        ValueError: If *user_id* is not positive or *username* is blank.
    """
    if int(user_id) <= 0:
        raise ValueError("user_id must be a positive integer")
    if not isinstance(username, str) or not username.strip():
        raise ValueError("username must be a non-empty string")

    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(hours=int(expiry_hours))

    payload: dict[str, Any] = {
        "user_id": int(user_id),
        "username": username,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    return jwt.encode(payload, secret_key, algorithm=ALGORITHM)


def verify_token(token: str, secret_key: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT, returning the payload on success.

    Checks the signature, expiry, presence of all required claims, and
    that ``user_id`` is a positive int and ``username`` a non-blank string.

    Returns:
        The decoded payload, or ``None`` if verification fails.
    """
    try:
        decoded = jwt.decode(
            token,
            secret_key,
            algorithms=[ALGORITHM],
            options={"require": REQUIRED_TOKEN_CLAIMS},
            leeway=int(current_app.config.get("JWT_CLOCK_SKEW_SECONDS", 30)),
        )
    except jwt.InvalidTokenError:
        return None

    user_id = decoded.get("user_id")
    username = decoded.get("username")

    if not isinstance(user_id, int) or user_id <= 0:
        return None
    if not isinstance(username, str) or not username.strip():
        return None
    return decoded


def issue_token_for(user_id: int, username: str) -> str:
    """Create a token using the current app's JWT settings."""
    return create_token(
        user_id=user_id,
        username=username,
        secret_key=current_app.config["JWT_SECRET_KEY"],
        expiry_hours=current_app.config["JWT_EXPIRY_HOURS"],
    )


def require_auth(view_func: Callable[..., tuple[Response, int] | Response]):
    """
    Enforce Bearer-token authentication on a JSON endpoint.

    On success the caller's identity is stored as ``g.user_id`` and
    ``g.username``; otherwise a 401 JSON error is returned.
    """

    @wraps(view_func)
    def wrapper(*args, **kwargs):
        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return jsonify({"error": "Missing or invalid Authorization header"}), 401

        token = auth_header[7:].strip()
        if not token:
            return jsonify({"error": "Missing or invalid Authorization header"}), 401

        payload = verify_token(token, current_app.config["JWT_SECRET_KEY"])
        if payload is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.user_id = payload["user_id"]
        g.username = payload["username"]
        return view_func(*args, **kwargs)

    return wrapper


def login_required(view_func: Callable[..., Any]):
    """
    Enforce a valid session token on an HTML page.

    Redirects to the login page (keeping the requested path in ``next``)
    when the session holds no token or the token no longer verifies.
    """

    @wraps(view_func)
    def wrapper(*args, **kwargs):
        token = session.get(SESSION_TOKEN_KEY)
        payload = verify_token(token, current_app.config["JWT_SECRET_KEY"]) if token else None
        if payload is None:
            session.pop(SESSION_TOKEN_KEY, None)
            if token:
                flash("Your session has expired. Please sign in again.", "error")
            return redirect(url_for("views.login", next=request.path))

        g.user_id = payload["user_id"]
        g.username = payload["username"]
        return view_func(*args, **kwargs)

    return wrapper
