from __future__ import annotations

import shutil
from pathlib import Path

from targetkit.errors import BuildNotImplementedError, TargetFailure

from image_build.framework.runtime import RunContext


def safe_rm_dir(directory: Path, *, within: Path | None = None) -> None:
    """Remove ``directory``; with ``within`` it must sit strictly below that directory."""

    resolved = Path(directory).resolve()
    if str(directory).strip() in ("", ".") or resolved == Path(resolved.anchor) or resolved == Path.home().resolve():
        raise TargetFailure(f"Refusing to remove unsafe directory: {directory}")
    if within is not None and Path(within).resolve() not in resolved.parents:
        raise TargetFailure(f"Refusing to remove {directory}: not inside {within}")
    if resolved.is_dir():
        shutil.rmtree(resolved)


def register_builtin_targets(ctx: RunContext) -> None:
    def clean() -> None:
        """Remove build artifacts"""
        ctx.logger.info("Cleaning build directory...")
        safe_rm_dir(ctx.layout.build_dir, within=ctx.layout.module_dir)
        ctx.logger.info("Clean complete")

    def build() -> None:
        """Build the image"""
        raise BuildNotImplementedError()

    def test() -> bool:
        """Run tests"""
        from image_build.testing.runner import run_module_tests

        totals = run_module_tests(ctx)
        return totals.succeeded

    ctx.registry.register("clean", clean, builtin=True)
    ctx.registry.register("build", build, builtin=True)
    ctx.registry.register("test", test, builtin=True)
