"""
Task Manager settings.

One class per environment (development, testing, production), each
reading overrides from environment variables: database location, token
signing, where task collections are kept, display timezone and log level.
"""

import os
from pathlib import Path

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent


class Config:
    """
    Base configuration with default settings.

    Attributes:
        SECRET_KEY: Flask session signing key.
        SQLALCHEMY_DATABASE_URI: Database connection string.
        JWT_SECRET_KEY: HMAC key used to sign and verify bearer tokens.
        JWT_EXPIRY_HOURS: Lifetime of issued tokens.
        JWT_CLOCK_SKEW_SECONDS: Allowed clock drift when checking ``exp``/``iat``.
        TASK_BACKEND: ``sql`` to keep tasks in the database, ``snapshot`` to
            keep one JSON file per user under ``SNAPSHOT_DIR``.
        DISPLAY_TIMEZONE: IANA name used by the HTML pages.
        LOG_LEVEL: Root logging level name.
    """

    SECRET_KEY: str = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-production")
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False

    SESSION_COOKIE_HTTPONLY: bool = True
    SESSION_COOKIE_SAMESITE: str = "Lax"

    # Default database location
    SQLALCHEMY_DATABASE_URI: str = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'instance' / 'tasks.db'}"
    )

    JWT_SECRET_KEY: str = os.environ.get(
        "JWT_SECRET_KEY", "dev-jwt-secret-change-in-production-0123456789"
    )
    JWT_EXPIRY_HOURS: int = int(os.environ.get("JWT_EXPIRY_HOURS", "24"))
    JWT_CLOCK_SKEW_SECONDS: int = int(os.environ.get("JWT_CLOCK_SKEW_SECONDS", "30"))

    TASK_BACKEND: str = os.environ.get("TASK_BACKEND", "sql")
    SNAPSHOT_DIR: str = os.environ.get(
        "SNAPSHOT_DIR", str(BASE_DIR / "instance" / "snapshots")
    )

    # Timezone the pages read form dates in and label deadlines with
    DISPLAY_TIMEZONE: str = os.environ.get("DISPLAY_TIMEZONE", "UTC")

    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG: bool = True
    TESTING: bool = False


class TestingConfig(Config):
    """Testing environment configuration."""

    DEBUG: bool = True
    TESTING: bool = True

    # In-memory database shared by the test client thread
    SQLALCHEMY_DATABASE_URI: str = os.environ.get("TEST_DATABASE_URL", "sqlite://")

    JWT_SECRET_KEY: str = os.environ.get(
        "TEST_JWT_SECRET_KEY", "test-jwt-secret-key-for-local-tests-123456"
    )


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG: bool = False
    TESTING: bool = False
    SESSION_COOKIE_SECURE: bool = True


# Configuration mapping for easy access
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Get the configuration class for the specified environment.

    Args:
        env: Environment name (development, testing, production).
             If None, uses FLASK_ENV environment variable.

    Returns:
        Configuration class for the specified environment.
    """
    if env is None:
        env = os.environ.get("FLASK_ENV", "development")
    return config.get(env, config["default"])
