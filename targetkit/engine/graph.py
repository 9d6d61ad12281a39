"""Dependency graph validation.

This module is intentionally app-agnostic and must not import `image_build.*`.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from targetkit.errors import CircularDependencyError, UnknownTargetError
from targetkit.target_registry import TargetRegistry, normalize_target_name


def check_acyclic(
    registry: TargetRegistry, target: str, visited_path: Sequence[str] = ()
) -> None:
    """Walk ``target``'s transitive dependencies; raise on the first cycle or unknown name."""

    key = normalize_target_name(target)
    if key in visited_path:
        raise CircularDependencyError([*visited_path, key])
    if not registry.has(key):
        raise UnknownTargetError(target, registry.available(), registry.suggest(target))

    path = [*visited_path, key]
    for dep in registry.dependencies(key):
        check_acyclic(registry, dep, path)


def validate_requested(registry: TargetRegistry, targets: Iterable[str]) -> None:
    for target in targets:
        check_acyclic(registry, target)


def execution_order(registry: TargetRegistry, targets: Iterable[str]) -> tuple[str, ...]:
    """Order in which bodies would run for ``targets`` (dependencies first, each once)."""

    seen: list[str] = []

    def _visit(name: str) -> None:
        key = normalize_target_name(name)
        if key in seen:
            return
        for dep in registry.dependencies(key):
            _visit(dep)
        seen.append(key)

    for target in targets:
        _visit(target)
    return tuple(seen)
