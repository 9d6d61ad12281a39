"""Test-time extensions, loaded by name with ``load_test_extension``."""
