"""Build and test orchestration for container image modules.

A module is a directory with a ``build.py`` defining ``register(ctx)`` and an
optional ``test/`` directory of test files. Run one with
``image-build run <module> [targets...] [-Pkey=value...] [--flags...]``.
"""
