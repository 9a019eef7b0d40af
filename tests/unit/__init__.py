"""Unit tests for store rules, helpers, models and persistence."""
