from targetkit.engine.executor import (
    DefaultTargetRecorder,
    NullTargetRecorder,
    TargetExecutor,
    TargetRecorder,
)
from targetkit.engine.graph import check_acyclic, execution_order, validate_requested

__all__ = [
    "DefaultTargetRecorder",
    "NullTargetRecorder",
    "TargetExecutor",
    "TargetRecorder",
    "check_acyclic",
    "execution_order",
    "validate_requested",
]
