from __future__ import annotations

import logging
import os
import platform
import shutil
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from targetkit.engine import DefaultTargetRecorder, TargetExecutor
from targetkit.errors import TargetFailure
from targetkit.extensions import ExtensionLoader
from targetkit.params import BuildParams, FlagSet, ParsedArguments
from targetkit.target_registry import TargetBody, TargetRegistry, normalize_target_name

from image_build.foundation.logging_utils import attach_log_file, detach_log_file
from image_build.foundation.process import CommandResult, run_command
from image_build.framework.config import BuildConfig
from image_build.framework.module import ModuleLayout

EXTENSION_PACKAGE = "image_build.extensions"

VALID_ARCHES: tuple[str, ...] = ("amd64", "arm64")

_MACHINE_TO_ARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}


def host_arch() -> str:
    machine = platform.machine().lower()
    return _MACHINE_TO_ARCH.get(machine, machine)


def platform_from_arch(arch: str) -> str:
    return f"linux/{arch}"


class LogFileRecorder(DefaultTargetRecorder):
    """Switches the run's log file as targets start: build.log, test.log, or none for clean."""

    def __init__(self, ctx: "RunContext"):
        super().__init__(ctx.logger)
        self._ctx = ctx

    def on_target_start(self, name: str) -> None:
        self._ctx.current_target = name
        self._ctx.switch_log_file(name)
        super().on_target_start(name)


@dataclass
class RunContext:
    """All mutable state of one invocation; nothing here is shared between runs."""

    layout: ModuleLayout
    cfg: BuildConfig
    params: BuildParams
    flags: FlagSet
    requested_targets: tuple[str, ...]
    logger: logging.Logger

    registry: TargetRegistry = field(default_factory=TargetRegistry)
    required_params: list[str] = field(default_factory=list)
    current_target: str | None = None
    outputs: dict[str, Any] = field(default_factory=dict)

    executor: TargetExecutor = field(init=False)
    extensions: ExtensionLoader = field(init=False)

    def __post_init__(self) -> None:
        self.executor = TargetExecutor(
            self.registry, recorder=LogFileRecorder(self), log=self.logger
        )
        self.extensions = ExtensionLoader(
            self,
            search_paths=self.layout.project_paths(self.cfg.extension_search_paths),
            packages=(EXTENSION_PACKAGE,),
            log=self.logger,
        )

    @classmethod
    def create(
        cls,
        layout: ModuleLayout,
        cfg: BuildConfig,
        parsed: ParsedArguments,
        logger: logging.Logger,
    ) -> "RunContext":
        return cls(
            layout=layout,
            cfg=cfg,
            params=BuildParams.from_sources(cfg.default_params, parsed.params),
            flags=FlagSet(active=parsed.flags),
            requested_targets=parsed.targets,
            logger=logger,
        )

    # Registration API used by build.py

    def target(
        self,
        name: str,
        *,
        depends_on: Sequence[str] = (),
        doc: str | None = None,
    ) -> Callable[[TargetBody], TargetBody]:
        def decorator(fn: TargetBody) -> TargetBody:
            self.registry.register(name, fn, depends_on=depends_on, doc=doc)
            return fn

        return decorator

    def depends_on(self, target: str, *deps: str) -> None:
        self.registry.depends_on(target, *deps)

    def disable_flag(self, flag: str, reason: str | None = None) -> None:
        self.flags.disable(flag, reason)

    def require_params(self, *names: str) -> None:
        for name in names:
            if name not in self.required_params:
                self.required_params.append(name)

    # Helpers for target bodies

    def is_flag_set(self, flag: str) -> bool:
        return self.flags.is_set(flag)

    def is_requested(self, target: str) -> bool:
        key = normalize_target_name(target)
        return any(normalize_target_name(t) == key for t in self.requested_targets)

    def get_param(self, name: str, default: str | None = None) -> str | None:
        return self.params.get(name, default)

    def set_param(self, name: str, value: str) -> None:
        self.params.set(name, value)

    def has_param(self, name: str) -> bool:
        return self.params.has(name)

    def load_extension(self, name: str) -> Any:
        return self.extensions.load(name)

    def build_arch(self) -> str:
        return self.params.get("arch") or host_arch()

    def validate_arch(self) -> str:
        arch = self.build_arch()
        if arch not in VALID_ARCHES:
            raise TargetFailure(
                f"Invalid arch parameter: {arch} (valid values: {', '.join(VALID_ARCHES)})"
            )
        return arch

    def ensure_build_dir(self) -> Path:
        self.layout.build_dir.mkdir(parents=True, exist_ok=True)
        return self.layout.build_dir

    def save_artifact(self, path: str | os.PathLike[str], dest_name: str | None = None) -> Path:
        source = Path(path)
        if not source.exists():
            raise TargetFailure(f"Artifact not found: {source}")
        self.layout.artifacts_dir.mkdir(parents=True, exist_ok=True)
        dest = self.layout.artifacts_dir / (dest_name or source.name)
        if source.is_dir():
            shutil.copytree(source, dest, dirs_exist_ok=True)
        else:
            shutil.copy2(source, dest)
        self.logger.debug("Saved artifact: %s", dest.name)
        return dest

    def list_artifacts(self) -> tuple[Path, ...]:
        root = self.layout.artifacts_dir
        if not root.is_dir():
            return ()
        return tuple(sorted(p for p in root.rglob("*") if p.is_file()))

    def run_command(
        self,
        argv: Sequence[str],
        *,
        timeout: float | None = None,
        cwd: str | os.PathLike[str] | None = None,
        env: Mapping[str, str] | None = None,
        input_text: str | None = None,
    ) -> CommandResult:
        return run_command(
            argv,
            timeout=timeout if timeout is not None else self.cfg.command_timeout_seconds,
            cwd=cwd,
            env=env,
            input_text=input_text,
            logger=self.logger,
        )

    def check_command(self, argv: Sequence[str], **kwargs: Any) -> CommandResult:
        """Like ``run_command`` but raises ``TargetFailure`` on a non-zero exit."""

        result = self.run_command(argv, **kwargs)
        if not result.ok:
            detail = "timed out" if result.timed_out else f"exit code {result.returncode}"
            stderr = result.stderr.strip()
            suffix = f": {stderr.splitlines()[-1]}" if stderr else ""
            raise TargetFailure(f"Command failed ({detail}): {' '.join(result.argv)}{suffix}")
        return result

    # Logging

    def switch_log_file(self, target: str) -> None:
        if not self.cfg.log_to_file or target == "clean":
            detach_log_file(self.logger)
            return
        log_file = self.layout.test_log if target == "test" else self.layout.build_log
        attach_log_file(self.logger, str(log_file), target=target, module_name=self.layout.name)

    def close(self) -> None:
        detach_log_file(self.logger)
