"""
Test suite for the Task Manager application.

This package contains:
- unit/: TaskStore rules, due-date helpers, tokens, models and persistence
- integration/: JSON API and HTML pages driven through the Flask test client
- security/: access control, mass assignment, output encoding and cookies
"""
