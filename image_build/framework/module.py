from __future__ import annotations

import os
import runpy
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from targetkit.errors import ArgumentError, StructuralError

from image_build.foundation.config_io import find_project_root
from image_build.framework.config import BuildConfig

if TYPE_CHECKING:
    from image_build.framework.runtime import RunContext

BUILD_SCRIPT_NAME = "build.py"


def resolve_module_dir(location: str | os.PathLike[str]) -> Path:
    """Accept a module directory or the path to its ``build.py``."""

    path = Path(location).expanduser().resolve()
    if path.is_file():
        return path.parent
    if path.is_dir():
        return path
    raise ArgumentError(f"Module not found: {location}")


@dataclass(frozen=True)
class ModuleLayout:
    module_dir: Path
    project_root: Path
    build_dir: Path
    test_dir: Path

    @classmethod
    def from_config(cls, module_dir: Path, cfg: BuildConfig) -> "ModuleLayout":
        module_dir = Path(module_dir).resolve()
        build_dir = (module_dir / cfg.build_dir).resolve()
        if module_dir not in build_dir.parents:
            raise StructuralError(
                f"paths.build_dir must be a subdirectory of the module: {cfg.build_dir}"
            )
        return cls(
            module_dir=module_dir,
            project_root=find_project_root(module_dir),
            build_dir=build_dir,
            test_dir=module_dir / cfg.test_dir,
        )

    @property
    def name(self) -> str:
        return self.module_dir.name

    @property
    def build_script(self) -> Path:
        return self.module_dir / BUILD_SCRIPT_NAME

    @property
    def artifacts_dir(self) -> Path:
        return self.build_dir / "artifacts"

    @property
    def build_log(self) -> Path:
        return self.build_dir / "build.log"

    @property
    def test_output_dir(self) -> Path:
        return self.build_dir / "test"

    @property
    def test_log(self) -> Path:
        return self.test_output_dir / "test.log"

    def project_paths(self, relative: tuple[str, ...]) -> tuple[Path, ...]:
        return tuple((self.project_root / rel).resolve() for rel in relative)


def load_build_script(ctx: "RunContext") -> dict[str, Any] | None:
    """Evaluate the module's ``build.py`` and call its ``register(ctx)`` hook.

    A module without ``build.py`` keeps only the built-in targets.
    """

    script = ctx.layout.build_script
    if not script.is_file():
        ctx.logger.debug("No %s in %s; using built-in targets only", BUILD_SCRIPT_NAME, ctx.layout.module_dir)
        return None

    run_name = f"image_build_module_{ctx.layout.name.replace('-', '_')}"
    namespace = runpy.run_path(str(script), run_name=run_name)
    register = namespace.get("register")
    if register is None:
        ctx.logger.warning("%s defines no register(ctx) function", script)
        return namespace
    if not callable(register):
        raise TypeError(f"{script}: register must be callable")
    register(ctx)
    return namespace
