import pytest

from targetkit.engine import (
    NullTargetRecorder,
    TargetExecutor,
    check_acyclic,
    execution_order,
    validate_requested,
)
from targetkit.errors import CircularDependencyError, TargetFailure, UnknownTargetError
from targetkit.target_registry import TargetRegistry


def _registry_with_calls(calls, names, *, fail=()):
    registry = TargetRegistry()
    for name in names:

        def body(name=name):
            calls.append(name)
            if name in fail:
                raise TargetFailure(f"{name} broke")

        registry.register(name, body)
    return registry


def test_shared_dependency_runs_once():
    calls: list[str] = []
    registry = _registry_with_calls(calls, ["build", "test", "push"])
    registry.depends_on("test", "build")
    registry.depends_on("push", "build")

    executor = TargetExecutor(registry, recorder=NullTargetRecorder())
    assert executor.execute_all(["test", "push"]) is True
    assert calls == ["build", "test", "push"]


def test_requested_twice_runs_once():
    calls: list[str] = []
    registry = _registry_with_calls(calls, ["build"])

    executor = TargetExecutor(registry, recorder=NullTargetRecorder())
    assert executor.execute_all(["build", "build"]) is True
    assert calls == ["build"]


def test_failed_target_is_not_marked_executed_and_stops_dependents():
    calls: list[str] = []
    registry = _registry_with_calls(calls, ["build", "test"], fail=("build",))
    registry.depends_on("test", "build")

    executor = TargetExecutor(registry, recorder=NullTargetRecorder())
    assert executor.execute("test") is False
    assert calls == ["build"]
    assert not executor.was_executed("build")
    assert executor.executed == frozenset()


def test_body_returning_false_fails_the_target():
    registry = TargetRegistry()
    registry.register("check", lambda: False)

    executor = TargetExecutor(registry, recorder=NullTargetRecorder())
    assert executor.execute("check") is False
    assert not executor.was_executed("check")


def test_unexpected_exception_is_a_target_failure():
    registry = TargetRegistry()

    def boom():
        raise RuntimeError("unexpected")

    registry.register("boom", boom)
    executor = TargetExecutor(registry, recorder=NullTargetRecorder())
    assert executor.execute("boom") is False


def test_cycle_is_reported_with_full_path():
    registry = TargetRegistry()
    for name in ("a", "b", "c"):
        registry.register(name, lambda: None)
    registry.depends_on("a", "b")
    registry.depends_on("b", "c")
    registry.depends_on("c", "a")

    with pytest.raises(CircularDependencyError) as excinfo:
        check_acyclic(registry, "a")
    assert excinfo.value.cycle == ["a", "b", "c", "a"]
    assert "Circular dependency detected: a -> b -> c -> a" in str(excinfo.value)


def test_cycle_detected_before_any_body_runs():
    calls: list[str] = []
    registry = _registry_with_calls(calls, ["build", "a", "b"])
    registry.depends_on("a", "b")
    registry.depends_on("b", "a")

    with pytest.raises(CircularDependencyError):
        validate_requested(registry, ["build", "a"])
    assert calls == []


def test_unknown_dependency_is_structural():
    registry = TargetRegistry()
    registry.register("publish", lambda: None)
    registry.depends_on("publish", "sign")

    with pytest.raises(UnknownTargetError, match=r"Unknown target: sign"):
        validate_requested(registry, ["publish"])


def test_unknown_target_suggests_close_names():
    registry = TargetRegistry()
    registry.register("build", lambda: None)

    with pytest.raises(UnknownTargetError, match=r"did you mean: build\?") as excinfo:
        validate_requested(registry, ["biuld"])
    assert excinfo.value.suggestions == ("build",)


def test_execution_order_lists_dependencies_first():
    registry = TargetRegistry()
    for name in ("build", "scan", "push"):
        registry.register(name, lambda: None)
    registry.depends_on("scan", "build")
    registry.depends_on("push", "build", "scan")

    assert execution_order(registry, ["push", "scan"]) == ("build", "scan", "push")


class _ErrorLog:
    def __init__(self):
        self.errors: list[tuple[str, str]] = []

    def on_target_start(self, name):
        pass

    def on_target_end(self, name):
        pass

    def on_target_error(self, name, exc):
        self.errors.append((name, str(exc)))


def test_body_calling_sys_exit_fails_only_that_target():
    import sys

    registry = TargetRegistry()
    registry.register("build", lambda: sys.exit(3))
    recorder = _ErrorLog()
    executor = TargetExecutor(registry, recorder=recorder)

    assert executor.execute("build") is False
    assert recorder.errors == [("build", "exit status 3")]
    assert not executor.was_executed("build")


@pytest.mark.parametrize("code", [None, 0])
def test_body_exiting_with_success_status_counts_as_success(code):
    import sys

    registry = TargetRegistry()
    registry.register("build", lambda: sys.exit(code))
    executor = TargetExecutor(registry, recorder=NullTargetRecorder())

    assert executor.execute("build") is True
    assert executor.was_executed("build")
