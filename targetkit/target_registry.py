from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from typing import Callable, Iterable

TargetBody = Callable[[], "bool | None"]

BUILTIN_TARGETS: tuple[str, ...] = ("clean", "build", "test")


def normalize_target_name(name: str) -> str:
    """Canonical registry key: trimmed, lower-cased, ``-`` folded into ``_``."""

    if not isinstance(name, str) or not name.strip():
        raise ValueError("target name must be a non-empty string")
    return name.strip().lower().replace("-", "_")


def display_target_name(name: str) -> str:
    return normalize_target_name(name).replace("_", "-")


@dataclass(frozen=True)
class TargetRef:
    name: str
    body: TargetBody
    doc: str | None = None
    builtin: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", normalize_target_name(self.name))
        if not callable(self.body):
            raise TypeError(f"Target body must be callable (type={type(self.body).__name__})")
        if self.doc is not None:
            doc = str(self.doc).strip()
            object.__setattr__(self, "doc", doc.splitlines()[0] if doc else None)


@dataclass
class TargetRegistry:
    """Name -> body mapping plus the dependency graph, populated by registration."""

    _by_name: dict[str, TargetRef] = field(default_factory=dict)
    _deps: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def register(
        self,
        name: str,
        body: TargetBody,
        *,
        depends_on: Iterable[str] = (),
        doc: str | None = None,
        builtin: bool = False,
    ) -> TargetRef:
        if doc is None:
            doc = getattr(body, "__doc__", None)
        ref = TargetRef(name=name, body=body, doc=doc, builtin=builtin)
        self._by_name[ref.name] = ref
        deps = tuple(depends_on)
        if deps:
            self.depends_on(ref.name, *deps)
        return ref

    def depends_on(self, target: str, *deps: str) -> None:
        key = normalize_target_name(target)
        self._deps[key] = tuple(normalize_target_name(dep) for dep in deps)

    def add_dependency(self, target: str, dep: str) -> None:
        """Prepend ``dep`` to ``target``'s dependencies unless already present."""

        key = normalize_target_name(target)
        dep_key = normalize_target_name(dep)
        current = self._deps.get(key, ())
        if dep_key not in current:
            self._deps[key] = (dep_key, *current)

    def dependencies(self, target: str) -> tuple[str, ...]:
        return self._deps.get(normalize_target_name(target), ())

    def has(self, target: str) -> bool:
        return normalize_target_name(target) in self._by_name

    def get(self, target: str) -> TargetRef | None:
        return self._by_name.get(normalize_target_name(target))

    def available(self) -> tuple[str, ...]:
        return tuple(sorted(self._by_name.keys()))

    def custom(self) -> tuple[TargetRef, ...]:
        return tuple(
            ref
            for name, ref in sorted(self._by_name.items())
            if name not in BUILTIN_TARGETS
        )

    def suggest(self, target: str, *, limit: int = 3) -> tuple[str, ...]:
        key = (target or "").strip().lower().replace("-", "_")
        if not key:
            return ()
        return tuple(difflib.get_close_matches(key, list(self.available()), n=limit))
