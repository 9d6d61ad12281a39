from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

TIMEOUT_RETURNCODE = 124
NOT_FOUND_RETURNCODE = 127


@dataclass(frozen=True)
class CommandResult:
    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return self.stdout + self.stderr


def run_command(
    argv: Sequence[str],
    *,
    timeout: float | None = None,
    cwd: str | os.PathLike[str] | None = None,
    env: Mapping[str, str] | None = None,
    input_text: str | None = None,
    logger: logging.Logger | None = None,
) -> CommandResult:
    """Run an argument vector; timeouts and missing executables become failed results."""

    if isinstance(argv, str) or not argv:
        raise ValueError("run_command requires a non-empty argument sequence")
    args = tuple(str(a) for a in argv)
    if logger:
        logger.debug("Running: %s", " ".join(args))

    merged_env = None
    if env is not None:
        merged_env = dict(os.environ)
        merged_env.update(env)

    try:
        proc = subprocess.run(
            list(args),
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=str(cwd) if cwd is not None else None,
            env=merged_env,
            input=input_text,
        )
    except subprocess.TimeoutExpired as exc:
        if logger:
            logger.error("Command timed out after %ss: %s", timeout, " ".join(args))
        return CommandResult(
            argv=args,
            returncode=TIMEOUT_RETURNCODE,
            stdout=_text(exc.stdout),
            stderr=_text(exc.stderr),
            timed_out=True,
        )
    except FileNotFoundError as exc:
        if logger:
            logger.error("Command not found: %s (%s)", args[0], exc)
        return CommandResult(argv=args, returncode=NOT_FOUND_RETURNCODE, stderr=str(exc))

    if logger:
        logger.debug("Exit code %s: %s", proc.returncode, " ".join(args))
    return CommandResult(
        argv=args, returncode=proc.returncode, stdout=proc.stdout or "", stderr=proc.stderr or ""
    )


def _text(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
