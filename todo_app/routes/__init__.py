"""
Routes package for the Task Manager application.

This package contains route blueprints:
- api: REST API endpoints for the task collection
- auth: account registration and token issuance
- views: HTML page routes for the web interface
"""
