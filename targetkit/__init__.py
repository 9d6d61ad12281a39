"""Reusable target orchestration kernel.

This package is intentionally independent of `image_build.*`. Module layout,
configuration, logging setup and the test runner live in the consuming
application.
"""

from targetkit.engine import (
    DefaultTargetRecorder,
    NullTargetRecorder,
    TargetExecutor,
    TargetRecorder,
    check_acyclic,
    execution_order,
    validate_requested,
)
from targetkit.errors import (
    ArgumentError,
    BuildNotImplementedError,
    CircularDependencyError,
    DisabledFlagError,
    ExtensionNotFoundError,
    MissingParameterError,
    StructuralError,
    TargetFailure,
    UnknownTargetError,
)
from targetkit.extensions import ExtensionLoader, normalize_extension_name
from targetkit.params import BuildParams, FlagSet, ParsedArguments, normalize_flag, parse_arguments
from targetkit.target_registry import (
    BUILTIN_TARGETS,
    TargetRef,
    TargetRegistry,
    display_target_name,
    normalize_target_name,
)

__all__ = [
    "ArgumentError",
    "BUILTIN_TARGETS",
    "BuildNotImplementedError",
    "BuildParams",
    "CircularDependencyError",
    "DefaultTargetRecorder",
    "DisabledFlagError",
    "ExtensionLoader",
    "ExtensionNotFoundError",
    "FlagSet",
    "MissingParameterError",
    "NullTargetRecorder",
    "ParsedArguments",
    "StructuralError",
    "TargetExecutor",
    "TargetFailure",
    "TargetRecorder",
    "TargetRef",
    "TargetRegistry",
    "UnknownTargetError",
    "check_acyclic",
    "display_target_name",
    "execution_order",
    "normalize_extension_name",
    "normalize_flag",
    "parse_arguments",
    "validate_requested",
]
