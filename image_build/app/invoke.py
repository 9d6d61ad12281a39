"""Process entry point: one invocation of a module's build script.

Order of work: parse arguments, load configuration, evaluate ``build.py``,
answer help flags, check structural constraints (disabled flags, required
parameters, unknown targets, cycles), then run the requested targets.

Exit status: 0 success, 1 a target or test failed, 2 structural error.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Sequence
from typing import TextIO

from targetkit.engine import execution_order, validate_requested
from targetkit.errors import DisabledFlagError, StructuralError, TargetFailure
from targetkit.params import parse_arguments
from targetkit.target_registry import BUILTIN_TARGETS, display_target_name

from image_build.foundation.config_io import load_config
from image_build.foundation.logging_utils import setup_build_logger
from image_build.framework.builtins import register_builtin_targets
from image_build.framework.config import BuildConfig
from image_build.framework.module import ModuleLayout, load_build_script, resolve_module_dir
from image_build.framework.runtime import RunContext
from image_build.testing.runner import list_test_files

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_STRUCTURAL = 2

SYSTEM_FLAGS: dict[str, str] = {
    "--load": "Load image into the local container runtime after build",
    "--push": "Push image to registry",
    "--debug": "Enable debug output",
    "--no-color": "Disable colored output",
    "--keep-test-files": "Keep test work directories for debugging",
    "--usage": "Show usage information",
    "--list-targets": "List available targets",
    "--list-flags": "List available flags",
    "--list-tests": "List discovered test files",
}

_BUILTIN_DOCS = {
    "clean": "Remove build artifacts",
    "build": "Build the image (default)",
    "test": "Run tests (implicitly runs build)",
}


def render_usage(ctx: RunContext) -> str:
    lines = [
        f"Usage: image-build run {ctx.layout.name} [targets...] [-Pkey=value...] [--flags...]",
        "",
        "Targets:",
    ]
    lines.extend(_target_lines(ctx))
    lines.extend(["", "Flags:"])
    lines.extend(_flag_lines(ctx))
    lines.extend(
        [
            "",
            "Parameters:",
            "  -Parch=<amd64|arm64>     Target architecture (default: host)",
            "  -Ptest_pattern=<regex>   Only run test files whose name matches",
            "  -Ptest_exclude=<regex>   Skip test files whose name matches",
        ]
    )
    if ctx.required_params:
        lines.append(f"  Required: {', '.join(ctx.required_params)}")
    return "\n".join(lines) + "\n"


def _target_lines(ctx: RunContext) -> list[str]:
    lines = []
    for name in BUILTIN_TARGETS:
        ref = ctx.registry.get(name)
        doc = _BUILTIN_DOCS[name] if ref is None or ref.builtin else (ref.doc or "")
        lines.append(f"  {name:<20} {doc}".rstrip())
    for ref in ctx.registry.custom():
        if ref.name in BUILTIN_TARGETS:
            continue
        lines.append(f"  {display_target_name(ref.name):<20} {ref.doc or ''}".rstrip())
    return lines


def extension_flags(ctx: RunContext) -> dict[str, str]:
    flags: dict[str, str] = {}
    for instance in ctx.extensions.instances():
        declared = getattr(instance, "FLAGS", None) or {}
        for flag, description in declared.items():
            flags.setdefault(flag, str(description))
    return flags


def _flag_lines(ctx: RunContext) -> list[str]:
    lines = [f"  {flag:<20} {text}" for flag, text in SYSTEM_FLAGS.items()]
    extra = {k: v for k, v in extension_flags(ctx).items() if k not in SYSTEM_FLAGS}
    if extra:
        lines.append("")
        lines.append("Extension flags:")
        lines.extend(f"  {flag:<20} {text}" for flag, text in sorted(extra.items()))
    if ctx.flags.disabled:
        lines.append("")
        lines.append("Disabled flags:")
        lines.extend(f"  {flag:<20} {reason}" for flag, reason in ctx.flags.disabled.items())
    return lines


def render_target_list(ctx: RunContext) -> str:
    return "Available targets:\n" + "\n".join(_target_lines(ctx)) + "\n"


def render_flag_list(ctx: RunContext) -> str:
    return "Available flags:\n" + "\n".join(_flag_lines(ctx)) + "\n"


def render_test_list(ctx: RunContext) -> str:
    entries = list_test_files(ctx.layout.test_dir)
    if not entries:
        return f"No test files found in {ctx.layout.test_dir}\n"
    lines = ["Available tests:"]
    for name, description in entries:
        lines.append(f"  {name:<30} {description or ''}".rstrip())
    return "\n".join(lines) + "\n"


def _help_output(ctx: RunContext) -> str | None:
    if ctx.is_flag_set("--usage"):
        return render_usage(ctx)
    if ctx.is_flag_set("--list-targets"):
        return render_target_list(ctx)
    if ctx.is_flag_set("--list-flags"):
        return render_flag_list(ctx)
    if ctx.is_flag_set("--list-tests"):
        return render_test_list(ctx)
    return None


def _log_structural(logger: logging.Logger, exc: StructuralError) -> None:
    logger.error("%s", exc)
    if isinstance(exc, DisabledFlagError):
        for flag, reason in exc.disabled:
            logger.error("Flag %s is disabled: %s", flag, reason)


def _prepare_context(
    module_location: str | os.PathLike[str],
    argv: Sequence[str],
    logger: logging.Logger,
) -> RunContext:
    parsed = parse_arguments(argv)
    module_dir = resolve_module_dir(module_location)

    try:
        cfg_dict, cfg_meta = load_config(module_dir)
        cfg, warnings = BuildConfig.from_dict(cfg_dict)
    except ValueError as exc:
        raise StructuralError(f"Invalid configuration: {exc}") from exc
    logger.debug("Configuration mode: %s", cfg_meta.get("mode"))
    for warning in warnings:
        logger.warning("%s", warning)

    ctx = RunContext.create(ModuleLayout.from_config(module_dir, cfg), cfg, parsed, logger)
    register_builtin_targets(ctx)
    try:
        load_build_script(ctx)
    except (StructuralError, TargetFailure):
        raise
    except SystemExit as exc:
        raise StructuralError(
            f"Failed to load {ctx.layout.build_script}: exited with status {exc.code}"
        ) from exc
    except Exception as exc:
        logger.debug("Traceback for %s", ctx.layout.build_script, exc_info=exc)
        raise StructuralError(f"Failed to load {ctx.layout.build_script}: {exc}") from exc
    return ctx


def invoke(
    module_location: str | os.PathLike[str],
    argv: Sequence[str],
    *,
    stream: TextIO | None = None,
    out: TextIO | None = None,
) -> int:
    """Run one build invocation and return its exit status."""

    argv = list(argv)
    out = out or sys.stdout
    module_name = os.path.basename(os.path.abspath(os.fspath(module_location))) or "module"
    if module_name == "build.py":
        module_name = os.path.basename(os.path.dirname(os.path.abspath(os.fspath(module_location))))
    logger = setup_build_logger(
        module_name,
        debug="--debug" in argv,
        color="--no-color" not in argv,
        stream=stream,
    )

    ctx: RunContext | None = None
    try:
        ctx = _prepare_context(module_location, argv, logger)

        help_text = _help_output(ctx)
        if help_text is not None:
            out.write(help_text)
            out.flush()
            return EXIT_OK

        ctx.flags.check_disabled()
        ctx.params.require(*ctx.required_params)

        targets = ctx.requested_targets
        if ctx.is_requested("test"):
            ctx.registry.add_dependency("test", "build")
        validate_requested(ctx.registry, targets)

        logger.info("Module: %s", ctx.layout.name)
        logger.debug("Targets: %s", " ".join(targets))
        logger.debug("Execution order: %s", " -> ".join(execution_order(ctx.registry, targets)))
        if not ctx.executor.execute_all(targets):
            logger.error("Build failed")
            return EXIT_FAILURE
        logger.info("Build completed successfully")
        return EXIT_OK
    except StructuralError as exc:
        _log_structural(logger, exc)
        return EXIT_STRUCTURAL
    except TargetFailure as exc:
        logger.error("%s", exc)
        return EXIT_FAILURE
    finally:
        if ctx is not None:
            ctx.close()
