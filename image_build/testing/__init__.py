"""Isolated per-file test runner used by the built-in ``test`` target."""
