"""Lazy, at-most-once loading of named capability extensions.

An extension is a Python module exposing an ``EXTENSION`` callable (usually a
class). Loading constructs ``EXTENSION(context)`` once per loader and returns
the same instance on every later request. Module code itself is imported once
per process.

This module is intentionally app-agnostic and must not import `image_build.*`.
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
import os
import pkgutil
import sys
import zlib
from collections.abc import Iterable, Sequence
from pathlib import Path
from types import ModuleType
from typing import Any

from targetkit.errors import ExtensionNotFoundError

logger = logging.getLogger(__name__)

_FILE_MODULE_PREFIX = "targetkit_ext"


def normalize_extension_name(name: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValueError("extension name must be a non-empty string")
    return name.strip().lower().replace("-", "_")


def _file_module_name(path: Path) -> str:
    digest = zlib.crc32(str(path.resolve()).encode("utf-8")) & 0xFFFFFFFF
    return f"{_FILE_MODULE_PREFIX}_{path.stem}_{digest:08x}"


def _import_file(path: Path) -> ModuleType:
    module_name = _file_module_name(path)
    cached = sys.modules.get(module_name)
    if cached is not None:
        return cached

    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot import extension file: {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise
    return module


class ExtensionLoader:
    def __init__(
        self,
        context: Any,
        *,
        search_paths: Sequence[str | os.PathLike[str]] = (),
        packages: Sequence[str] = (),
        log: logging.Logger | None = None,
    ):
        self._context = context
        self._search_paths = tuple(Path(p) for p in search_paths)
        self._packages = tuple(packages)
        self._log = log or logger
        self._loaded: dict[str, Any] = {}

    def is_loaded(self, name: str) -> bool:
        return normalize_extension_name(name) in self._loaded

    def loaded(self) -> tuple[str, ...]:
        return tuple(self._loaded.keys())

    def instances(self) -> tuple[Any, ...]:
        return tuple(self._loaded.values())

    def _searched(self, key: str) -> tuple[str, ...]:
        return (
            *(str(p / f"{key}.py") for p in self._search_paths),
            *(f"{pkg}.{key}" for pkg in self._packages),
        )

    def _resolve(self, key: str) -> ModuleType | None:
        for directory in self._search_paths:
            candidate = directory / f"{key}.py"
            if candidate.is_file():
                self._log.debug("Resolved extension %s -> %s", key, candidate)
                return _import_file(candidate)

        for package in self._packages:
            module_name = f"{package}.{key}"
            try:
                found = importlib.util.find_spec(module_name)
            except ModuleNotFoundError:
                found = None
            if found is not None:
                self._log.debug("Resolved extension %s -> %s", key, module_name)
                return importlib.import_module(module_name)
        return None

    def load(self, name: str) -> Any:
        key = normalize_extension_name(name)
        if key in self._loaded:
            self._log.debug("Extension already loaded: %s", name)
            return self._loaded[key]

        module = self._resolve(key)
        if module is None:
            self._log.error("Extension not found: %s", name)
            raise ExtensionNotFoundError(name, self._searched(key))

        factory = getattr(module, "EXTENSION", None)
        if factory is None or not callable(factory):
            raise TypeError(f"Extension module {module.__name__} must define a callable EXTENSION")

        self._log.debug("Loading extension: %s", name)
        instance = factory(self._context)
        self._loaded[key] = instance
        return instance

    def load_all(self, names: Iterable[str]) -> bool:
        """Load every name; report all failures instead of stopping at the first."""

        failed = False
        for name in names:
            try:
                self.load(name)
            except ExtensionNotFoundError:
                failed = True
        return not failed

    def available(self) -> tuple[str, ...]:
        names: set[str] = set()
        for directory in self._search_paths:
            if directory.is_dir():
                names.update(p.stem for p in directory.glob("*.py") if not p.stem.startswith("_"))
        for package in self._packages:
            try:
                pkg = importlib.import_module(package)
            except ModuleNotFoundError:
                continue
            for info in pkgutil.iter_modules(getattr(pkg, "__path__", [])):
                if not info.name.startswith("_"):
                    names.add(info.name)
        return tuple(sorted(n.replace("_", "-") for n in names))
