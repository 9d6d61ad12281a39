"""Error taxonomy shared by the kernel and its callers.

Structural errors are configuration mistakes detected before any target body
runs. Target failures are ordinary, local failures of a single body.
"""

from __future__ import annotations


class StructuralError(Exception):
    """Fatal configuration or input error; aborts the invocation."""

    exit_code = 2


class ArgumentError(StructuralError):
    pass


class DisabledFlagError(StructuralError):
    def __init__(self, disabled: list[tuple[str, str]]):
        self.disabled = list(disabled)
        details = "; ".join(f"{flag} ({reason})" for flag, reason in self.disabled)
        super().__init__(f"Disabled flag(s) used: {details}")


class CircularDependencyError(StructuralError):
    def __init__(self, cycle: list[str]):
        self.cycle = list(cycle)
        super().__init__(f"Circular dependency detected: {' -> '.join(self.cycle)}")


class UnknownTargetError(StructuralError):
    def __init__(
        self, target: str, available: tuple[str, ...] = (), suggestions: tuple[str, ...] = ()
    ):
        self.target = target
        self.available = tuple(available)
        self.suggestions = tuple(suggestions)
        if self.suggestions:
            hint = f"did you mean: {', '.join(self.suggestions)}?"
        else:
            hint = f"available: {', '.join(self.available) or '<none>'}"
        super().__init__(f"Unknown target: {target} ({hint})")


class MissingParameterError(StructuralError):
    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(
            f"Missing required parameters: {', '.join(self.missing)} "
            "(use -P<name>=<value> to set parameters)"
        )


class TargetFailure(Exception):
    """Raised by a target body (or a capability it calls) to fail the target."""

    exit_code = 1


class ExtensionNotFoundError(TargetFailure):
    def __init__(self, name: str, searched: tuple[str, ...] = ()):
        self.name = name
        self.searched = tuple(searched)
        where = ", ".join(self.searched) or "<nowhere>"
        super().__init__(f"Extension not found: {name} (searched: {where})")


class BuildNotImplementedError(TargetFailure):
    def __init__(self) -> None:
        super().__init__(
            "Build target not implemented. Register a 'build' target in the module's build.py"
        )
