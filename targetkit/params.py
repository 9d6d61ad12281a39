"""Command-line classification into parameters, flags and target names."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from targetkit.errors import ArgumentError, DisabledFlagError, MissingParameterError

DEFAULT_TARGETS: tuple[str, ...] = ("build",)

_PARAM_RE = re.compile(r"^-P([^=]+)=(.*)$", re.DOTALL)


def normalize_flag(flag: str) -> str:
    if not isinstance(flag, str) or not flag.strip():
        raise TypeError("flag must be a non-empty string")
    text = flag.strip()
    return text if text.startswith("--") else f"--{text}"


@dataclass(frozen=True)
class ParsedArguments:
    params: dict[str, str]
    flags: tuple[str, ...]
    targets: tuple[str, ...]


def parse_arguments(argv: Sequence[str]) -> ParsedArguments:
    """
    Classify raw arguments.

    Rules, checked in order:
      - ``-P<key>=<value>`` sets a parameter (last occurrence wins)
      - ``--<name>`` sets a flag
      - any other ``-`` argument is an ``ArgumentError``
      - everything else is a target name (deduplicated, first occurrence kept)

    No targets means ``["build"]``.
    """

    params: dict[str, str] = {}
    flags: list[str] = []
    targets: list[str] = []

    for arg in argv:
        if not isinstance(arg, str):
            raise ArgumentError(f"Invalid argument type: {type(arg).__name__}")
        match = _PARAM_RE.match(arg)
        if match:
            params[match.group(1)] = match.group(2)
        elif arg.startswith("--"):
            if arg not in flags:
                flags.append(arg)
        elif arg.startswith("-"):
            raise ArgumentError(f"Invalid flag format: {arg} (use -Pname=value or --flag)")
        elif arg not in targets:
            targets.append(arg)

    if not targets:
        targets = list(DEFAULT_TARGETS)

    return ParsedArguments(params=params, flags=tuple(flags), targets=tuple(targets))


@dataclass
class BuildParams:
    """Named string parameters. Written during parsing, read by target bodies."""

    values: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_sources(
        cls, defaults: Mapping[str, str] | None, overrides: Mapping[str, str]
    ) -> "BuildParams":
        merged: dict[str, str] = {}
        for key, value in (defaults or {}).items():
            merged[str(key)] = str(value)
        merged.update(overrides)
        return cls(values=merged)

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.values.get(name, default)

    def set(self, name: str, value: str) -> None:
        if not isinstance(name, str) or not name.strip() or "=" in name:
            raise ValueError(f"Invalid parameter name: {name!r}")
        self.values[name] = str(value)

    def has(self, name: str) -> bool:
        return name in self.values

    def missing(self, names: Iterable[str]) -> list[str]:
        return [name for name in names if name not in self.values]

    def require(self, *names: str) -> None:
        missing = self.missing(names)
        if missing:
            raise MissingParameterError(missing)

    def as_dict(self) -> dict[str, str]:
        return dict(self.values)


@dataclass
class FlagSet:
    active: tuple[str, ...] = ()
    disabled: dict[str, str] = field(default_factory=dict)

    def is_set(self, flag: str) -> bool:
        return normalize_flag(flag) in self.active

    def disable(self, flag: str, reason: str | None = None) -> None:
        text = (reason or "").strip() or "This flag is disabled for this module"
        self.disabled[normalize_flag(flag)] = text

    def check_disabled(self) -> None:
        used = [(flag, reason) for flag, reason in self.disabled.items() if flag in self.active]
        if used:
            raise DisabledFlagError(used)
