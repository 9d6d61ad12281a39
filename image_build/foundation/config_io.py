from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

PROJECT_CONFIG_NAME = "build.yaml"
MODULE_CONFIG_NAME = "module.yaml"


def find_project_root(start: str | os.PathLike[str]) -> Path:
    """Walk up from ``start`` to the first directory holding a project marker.

    Falls back to ``start`` itself when no marker is found.
    """

    start_path = Path(start).resolve()
    if start_path.is_file():
        start_path = start_path.parent

    for candidate in (start_path, *start_path.parents):
        if (candidate / ".shared").is_dir():
            return candidate
        if (candidate / PROJECT_CONFIG_NAME).is_file():
            return candidate
        if (candidate / ".git").exists():
            return candidate
    return start_path


def read_config_file(path: str | os.PathLike[str]) -> dict[str, Any]:
    """Parse one YAML config file; an empty file is an empty mapping."""

    try:
        handle = open(path, "r", encoding="utf-8")
    except FileNotFoundError as exc:
        raise ValueError(f"Config file not found: {path}") from exc
    with handle:
        try:
            document = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if document is None:
        return {}
    if not isinstance(document, Mapping):
        raise ValueError(f"{path} must contain a YAML mapping, not {type(document).__name__}")
    return dict(document)


def overlay_config(
    base: Mapping[str, Any], overlay: Mapping[str, Any], *, source: str, prefix: str = ""
) -> dict[str, Any]:
    """
    Apply a module config on top of the project config.

    Sections present in both files merge key by key. Scalars and lists from the
    overlay replace the project value, and an explicit ``null`` drops the key.
    """

    merged = dict(base)
    for key, value in overlay.items():
        if value is None:
            merged.pop(key, None)
            continue
        where = f"{prefix}{key}"
        current = merged.get(key)
        if current is not None and isinstance(current, Mapping) != isinstance(value, Mapping):
            raise ValueError(
                f"{source}: {where} is {type(value).__name__} but the project config "
                f"has {type(current).__name__}"
            )
        if isinstance(current, Mapping):
            merged[key] = overlay_config(current, value, source=source, prefix=f"{where}.")
        else:
            merged[key] = value
    return merged


def config_files(module_dir: str | os.PathLike[str], *, env_var: str | None) -> tuple[str, list[Path]]:
    """Which files make up the configuration, in overlay order, and how they were chosen."""

    override = os.environ.get(env_var, "").strip() if env_var else ""
    if override:
        return "env", [Path(os.path.expandvars(override)).expanduser().resolve()]

    project_config = find_project_root(module_dir) / PROJECT_CONFIG_NAME
    module_config = Path(module_dir).resolve() / MODULE_CONFIG_NAME
    files: list[Path] = []
    modes: list[str] = []
    if project_config.is_file():
        files.append(project_config.resolve())
        modes.append("project")
    if module_config.is_file() and module_config not in files:
        files.append(module_config)
        modes.append("module")
    return "+".join(modes) or "defaults", files


def load_config(
    module_dir: str | os.PathLike[str],
    *,
    env_var: str | None = "IMAGE_BUILD_CONFIG",
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Read ``<project>/build.yaml`` overlaid with ``<module>/module.yaml``.

    Both files are optional. A path in ``env_var`` replaces the pair with that
    single file. Returns the merged mapping plus metadata about what was read.
    """

    mode, files = config_files(module_dir, env_var=env_var)
    cfg: dict[str, Any] = {}
    for index, path in enumerate(files):
        document = read_config_file(path)
        cfg = overlay_config(cfg, document, source=path.name) if index else document

    meta = {
        "mode": mode,
        "paths": [str(path) for path in files],
        "project_root": str(find_project_root(module_dir)),
    }
    return cfg, meta
