"""Security-focused tests: access control, input handling, encoding and cookies."""
