from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

DEFAULT_BUILD_DIR = "build"
DEFAULT_TEST_DIR = "test"
DEFAULT_COMMAND_TIMEOUT_SECONDS = 600


def parse_bool(value: Any, path: str) -> bool:
    """
    Strict boolean parsing to avoid bool('false') footguns.

    Accepts True/False, 0/1 and the strings true/false/1/0/yes/no
    (case-insensitive, surrounding whitespace ignored).
    """

    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (0, 1):
            return bool(value)
        raise ValueError(f"Invalid boolean for {path}: {value!r}")
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes"}:
            return True
        if normalized in {"false", "0", "no"}:
            return False
        raise ValueError(f"Invalid boolean for {path}: {value!r}")

    raise ValueError(f"Invalid boolean for {path}: {value!r}")


def parse_int(value: Any, path: str) -> int:
    if value is None:
        raise ValueError(f"Invalid config value for {path}: None")
    if isinstance(value, bool):
        raise ValueError(f"Invalid config type for {path}: expected int, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        if not value.strip():
            raise ValueError(f"Invalid config value for {path}: must be an int")
        try:
            return int(value.strip())
        except Exception as exc:  # noqa: BLE001
            raise ValueError(f"Invalid config value for {path}: must be an int") from exc
    raise ValueError(f"Invalid config type for {path}: expected int")


def _parse_str(value: Any, path: str, *, default: str | None) -> str | None:
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError(f"Invalid config type for {path}: expected string")
    text = value.strip()
    return text or default


def _parse_str_list(value: Any, path: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"Invalid config type for {path}: expected list of strings")
    out: list[str] = []
    for idx, item in enumerate(value):
        if not isinstance(item, str) or not item.strip():
            raise ValueError(f"Invalid config value for {path}[{idx}]: expected non-empty string")
        out.append(item.strip())
    return tuple(out)


def _mapping(data: Mapping[str, Any], key: str, path: str) -> Mapping[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Invalid config type for {path}: expected mapping")
    return value


_KNOWN_KEYS: dict[str, tuple[str, ...] | None] = {
    "registry": None,
    "strict": None,
    "params": None,
    "paths": ("build_dir", "test_dir"),
    "extensions": ("search_paths", "test_search_paths"),
    "timeouts": ("command_seconds",),
    "test": ("keep_files", "junit"),
    "logging": ("file",),
}


def _unknown_keys(data: Mapping[str, Any]) -> list[str]:
    unknown: list[str] = []
    for key, value in data.items():
        if key not in _KNOWN_KEYS:
            unknown.append(str(key))
            continue
        children = _KNOWN_KEYS[key]
        if children is None or not isinstance(value, Mapping):
            continue
        for child in value.keys():
            if child not in children:
                unknown.append(f"{key}.{child}")
    return sorted(unknown)


@dataclass(frozen=True)
class BuildConfig:
    registry: str | None = None
    strict: bool = False
    build_dir: str = DEFAULT_BUILD_DIR
    test_dir: str = DEFAULT_TEST_DIR
    extension_search_paths: tuple[str, ...] = ()
    test_extension_search_paths: tuple[str, ...] = ()
    command_timeout_seconds: int = DEFAULT_COMMAND_TIMEOUT_SECONDS
    keep_test_files: bool = False
    junit_report: bool = True
    log_to_file: bool = True
    default_params: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> tuple["BuildConfig", list[str]]:
        data = data or {}
        if not isinstance(data, Mapping):
            raise ValueError("Build config must be a mapping")

        strict = parse_bool(data.get("strict", False), "strict")
        unknown = _unknown_keys(data)
        warnings: list[str] = []
        if unknown:
            if strict:
                raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
            warnings.extend(f"Unknown config key: {key}" for key in unknown)

        paths = _mapping(data, "paths", "paths")
        extensions = _mapping(data, "extensions", "extensions")
        timeouts = _mapping(data, "timeouts", "timeouts")
        test = _mapping(data, "test", "test")
        logging_cfg = _mapping(data, "logging", "logging")
        params = _mapping(data, "params", "params")

        timeout_seconds = parse_int(
            timeouts.get("command_seconds", DEFAULT_COMMAND_TIMEOUT_SECONDS),
            "timeouts.command_seconds",
        )
        if timeout_seconds <= 0:
            raise ValueError("timeouts.command_seconds must be > 0")

        default_params: dict[str, str] = {}
        for key, value in params.items():
            if not isinstance(key, str) or not key.strip() or "=" in key:
                raise ValueError(f"Invalid parameter name under params: {key!r}")
            if value is None or isinstance(value, (Mapping, list, tuple)):
                raise ValueError(f"Invalid config value for params.{key}: expected scalar")
            default_params[key.strip()] = str(value)

        cfg = cls(
            registry=_parse_str(data.get("registry"), "registry", default=None),
            strict=strict,
            build_dir=_parse_str(paths.get("build_dir"), "paths.build_dir", default=DEFAULT_BUILD_DIR)
            or DEFAULT_BUILD_DIR,
            test_dir=_parse_str(paths.get("test_dir"), "paths.test_dir", default=DEFAULT_TEST_DIR)
            or DEFAULT_TEST_DIR,
            extension_search_paths=_parse_str_list(
                extensions.get("search_paths"), "extensions.search_paths"
            ),
            test_extension_search_paths=_parse_str_list(
                extensions.get("test_search_paths"), "extensions.test_search_paths"
            ),
            command_timeout_seconds=timeout_seconds,
            keep_test_files=parse_bool(test.get("keep_files", False), "test.keep_files"),
            junit_report=parse_bool(test.get("junit", True), "test.junit"),
            log_to_file=parse_bool(logging_cfg.get("file", True), "logging.file"),
            default_params=default_params,
        )
        return cfg, warnings
