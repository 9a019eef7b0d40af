"""WSGI entry point for the Task Manager."""

import os

from todo_app import create_app

app = create_app(os.getenv("FLASK_ENV", "production"))
