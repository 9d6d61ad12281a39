"""Target execution with at-most-once semantics per run.

This module is intentionally app-agnostic and must not import `image_build.*`.
"""

from __future__ import annotations

import logging
from typing import Protocol

from targetkit.errors import StructuralError, TargetFailure, UnknownTargetError
from targetkit.target_registry import TargetRegistry, display_target_name, normalize_target_name

logger = logging.getLogger(__name__)


class TargetRecorder(Protocol):
    def on_target_start(self, name: str) -> None:
        ...

    def on_target_end(self, name: str) -> None:
        ...

    def on_target_error(self, name: str, exc: BaseException | None) -> None:
        ...


class DefaultTargetRecorder:
    def __init__(self, log: logging.Logger | None = None):
        self._log = log or logger

    def on_target_start(self, name: str) -> None:
        self._log.info("Executing target: %s", display_target_name(name))

    def on_target_end(self, name: str) -> None:
        self._log.debug("Target '%s' completed", display_target_name(name))

    def on_target_error(self, name: str, exc: BaseException | None) -> None:
        label = display_target_name(name)
        if exc is None:
            self._log.error("Target failed: %s", label)
        elif isinstance(exc, TargetFailure):
            self._log.error("Target failed: %s (%s)", label, exc)
        else:
            self._log.error("Target failed: %s (%s: %s)", label, type(exc).__name__, exc)
            self._log.debug("Traceback for target %s", label, exc_info=exc)


class NullTargetRecorder:
    def on_target_start(self, name: str) -> None:
        return

    def on_target_end(self, name: str) -> None:
        return

    def on_target_error(self, name: str, exc: BaseException | None) -> None:
        return


class TargetExecutor:
    def __init__(
        self,
        registry: TargetRegistry,
        *,
        recorder: TargetRecorder | None = None,
        log: logging.Logger | None = None,
    ):
        self._registry = registry
        self._log = log or logger
        self._recorder = recorder or DefaultTargetRecorder(self._log)
        self._executed: set[str] = set()

    @property
    def executed(self) -> frozenset[str]:
        return frozenset(self._executed)

    def was_executed(self, target: str) -> bool:
        return normalize_target_name(target) in self._executed

    def execute(self, target: str) -> bool:
        key = normalize_target_name(target)
        if key in self._executed:
            self._log.debug("Target '%s' already executed, skipping", display_target_name(key))
            return True

        deps = self._registry.dependencies(key)
        if deps:
            self._log.debug(
                "Target '%s' depends on: %s",
                display_target_name(key),
                " ".join(display_target_name(d) for d in deps),
            )
        for dep in deps:
            if not self.execute(dep):
                return False

        ref = self._registry.get(key)
        if ref is None:
            raise UnknownTargetError(target, self._registry.available())

        self._recorder.on_target_start(key)
        try:
            result = ref.body()
        except StructuralError:
            raise
        except SystemExit as exc:
            if exc.code not in (None, 0):
                self._recorder.on_target_error(key, TargetFailure(f"exit status {exc.code}"))
                return False
            result = None
        except Exception as exc:  # noqa: BLE001
            self._recorder.on_target_error(key, exc)
            return False

        if result is False:
            self._recorder.on_target_error(key, None)
            return False

        self._executed.add(key)
        self._recorder.on_target_end(key)
        return True

    def execute_all(self, targets: tuple[str, ...] | list[str]) -> bool:
        for target in targets:
            if not self.execute(target):
                return False
        return True
