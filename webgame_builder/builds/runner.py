"""Toolchain runner for executing build steps.

This module handles:
- Executing external toolchain commands with subprocess
- Running in-process file steps (config writers, copies, packers)
- Capturing stdout/stderr to the job's build log
- Enforcing per-step timeouts and cooperative cancellation

The runner never interprets what a step does. A step either runs a
program with arguments in a working directory, or calls a function; a
non-zero exit or a raised error aborts the remaining steps.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

# How much captured output is kept in a step error
OUTPUT_TAIL_CHARS = 4000


class BuildStepError(Exception):
    """Raised when a build step fails."""

    def __init__(
        self,
        step: str,
        message: str,
        exit_code: int | None = None,
        output: str = "",
        code: str = "build_step_error",
    ) -> None:
        super().__init__(message)
        self.step = step
        self.exit_code = exit_code
        self.output = output
        self.code = code

    @property
    def detail(self) -> str:
        """Human-readable failure description including captured output."""
        if not self.output.strip():
            return str(self)
        return f"{self}\n{self.output.strip()}"


class BuildCancelledError(Exception):
    """Raised when a build is cancelled between steps."""

    def __init__(self, step: str, code: str = "cancelled") -> None:
        super().__init__(f"Build cancelled before step '{step}'")
        self.step = step
        self.code = code


class MissingOutputError(Exception):
    """Raised by file steps when an expected toolchain output is absent."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Expected output not found: {path}")
        self.path = path


@dataclass(frozen=True)
class CommandStep:
    """An external program invocation.

    Attributes:
        name: Stable step identifier used in logs and errors.
        program: Executable to run.
        arguments: Arguments passed to the program.
        working_directory: Directory the program runs in.
        env: Extra environment variables.
    """

    name: str
    program: str
    arguments: tuple[str, ...]
    working_directory: Path
    env: dict[str, str] = field(default_factory=dict)

    @property
    def argv(self) -> list[str]:
        """Full command line as a list."""
        return [self.program, *self.arguments]

    @property
    def command(self) -> str:
        """Full command line as a shell-quoted string."""
        return shlex.join(self.argv)


@dataclass(frozen=True)
class FileStep:
    """An in-process filesystem operation.

    Attributes:
        name: Stable step identifier used in logs and errors.
        action: Function performing the operation.
        description: Short text written to the build log.
    """

    name: str
    action: Callable[[], object]
    description: str = ""


Step = CommandStep | FileStep


@dataclass
class StepResult:
    """Result of a single step.

    Attributes:
        name: Step identifier.
        exit_code: Process exit code (0 for file steps).
        started_at: Step start time.
        finished_at: Step finish time.
        output: Captured combined stdout/stderr.
    """

    name: str
    exit_code: int
    started_at: datetime
    finished_at: datetime
    output: str = ""

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return (self.finished_at - self.started_at).total_seconds()


def _tail(text: str, limit: int = OUTPUT_TAIL_CHARS) -> str:
    if len(text) <= limit:
        return text
    return "..." + text[-limit:]


def _write_log(log_path: Path | None, text: str) -> None:
    if log_path is None:
        return
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with log_path.open("a", encoding="utf-8") as log_file:
        log_file.write(text)


def run_command(
    step: CommandStep,
    log_path: Path | None = None,
    timeout: int | None = None,
) -> StepResult:
    """Execute an external command step.

    Args:
        step: Command to run.
        log_path: Build log that receives the command and its output.
        timeout: Timeout in seconds (None = no timeout).

    Returns:
        StepResult of a successful run.

    Raises:
        BuildStepError: On non-zero exit, timeout, or launch failure.
    """
    logger.info("Executing step %s: %s", step.name, step.command)
    logger.debug("Working directory: %s", step.working_directory)

    started_at = datetime.now(timezone.utc)
    _write_log(
        log_path,
        f"# Step: {step.name}\n"
        f"# Command: {step.command}\n"
        f"# CWD: {step.working_directory}\n"
        f"# Started: {started_at.isoformat()}\n",
    )

    env: dict[str, str] | None = None
    if step.env:
        env = dict(os.environ)
        env.update(step.env)

    try:
        result = subprocess.run(
            step.argv,
            cwd=step.working_directory,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            text=True,
            errors="replace",
            timeout=timeout,
            env=env,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        output = e.output or ""
        if isinstance(output, bytes):
            output = output.decode("utf-8", errors="replace")
        _write_log(log_path, f"{output}\n# TIMEOUT after {timeout} seconds\n\n")
        logger.error("Step %s timed out after %s seconds", step.name, timeout)
        raise BuildStepError(
            step.name,
            f"Step '{step.name}' timed out after {timeout} seconds",
            exit_code=-1,
            output=_tail(output),
            code="step_timeout",
        ) from e
    except OSError as e:
        _write_log(log_path, f"# Failed to start: {e}\n\n")
        logger.error("Failed to execute step %s: %s", step.name, e)
        raise BuildStepError(
            step.name,
            f"Step '{step.name}' could not be started: {e}",
            code="execution_error",
        ) from e

    finished_at = datetime.now(timezone.utc)
    output = result.stdout or ""
    duration = (finished_at - started_at).total_seconds()
    _write_log(
        log_path,
        f"{output}\n# Exit code: {result.returncode}\n# Duration: {duration:.1f}s\n\n",
    )

    if result.returncode != 0:
        logger.error(
            "Step %s failed with exit code %d. See log: %s",
            step.name,
            result.returncode,
            log_path,
        )
        raise BuildStepError(
            step.name,
            f"Step '{step.name}' failed with exit code {result.returncode}",
            exit_code=result.returncode,
            output=_tail(output),
        )

    return StepResult(
        name=step.name,
        exit_code=result.returncode,
        started_at=started_at,
        finished_at=finished_at,
        output=output,
    )


def run_file_step(step: FileStep, log_path: Path | None = None) -> StepResult:
    """Execute an in-process file step.

    Raises:
        BuildStepError: If the action fails or an expected output is missing.
    """
    logger.info("Executing step %s", step.name)
    started_at = datetime.now(timezone.utc)
    _write_log(
        log_path,
        f"# Step: {step.name}\n"
        f"# Action: {step.description or step.name}\n"
        f"# Started: {started_at.isoformat()}\n",
    )

    try:
        step.action()
    except MissingOutputError as e:
        _write_log(log_path, f"# {e}\n\n")
        logger.error("Step %s: %s", step.name, e)
        raise BuildStepError(
            step.name,
            f"Step '{step.name}' failed: {e}",
            code="missing_output",
        ) from e
    except (OSError, ValueError) as e:
        _write_log(log_path, f"# Error: {e}\n\n")
        logger.error("Step %s failed: %s", step.name, e)
        raise BuildStepError(
            step.name,
            f"Step '{step.name}' failed: {e}",
        ) from e

    finished_at = datetime.now(timezone.utc)
    _write_log(log_path, "# Done\n\n")
    return StepResult(
        name=step.name,
        exit_code=0,
        started_at=started_at,
        finished_at=finished_at,
    )


def run_step(
    step: Step,
    log_path: Path | None = None,
    timeout: int | None = None,
) -> StepResult:
    """Execute one step of either kind."""
    if isinstance(step, CommandStep):
        return run_command(step, log_path=log_path, timeout=timeout)
    return run_file_step(step, log_path=log_path)


def run_steps(
    steps: Sequence[Step],
    log_path: Path | None = None,
    timeout: int | None = None,
    on_step: Callable[[int, Step], None] | None = None,
    cancel_event: threading.Event | None = None,
) -> list[StepResult]:
    """Execute steps strictly in order, stopping at the first failure.

    Args:
        steps: Ordered steps.
        log_path: Build log shared by all steps.
        timeout: Per-step timeout for external commands.
        on_step: Called with (index, step) right before each step starts.
        cancel_event: When set, the next step is not started.

    Returns:
        Results of all steps.

    Raises:
        BuildStepError: From the first failing step.
        BuildCancelledError: If cancellation was requested.
    """
    results: list[StepResult] = []
    for index, step in enumerate(steps):
        if cancel_event is not None and cancel_event.is_set():
            _write_log(log_path, f"# Cancelled before {step.name}\n")
            raise BuildCancelledError(step.name)
        if on_step is not None:
            on_step(index, step)
        results.append(run_step(step, log_path=log_path, timeout=timeout))
    return results


__all__ = [
    "BuildCancelledError",
    "BuildStepError",
    "CommandStep",
    "FileStep",
    "MissingOutputError",
    "Step",
    "StepResult",
    "run_command",
    "run_file_step",
    "run_step",
    "run_steps",
]
