"""Checks that run an external command and judge its result."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
import subprocess
import sys
from typing import Callable, Union

from diagnostics.models import DEFAULT_TIMEOUT_S, DiagnosticStatus, Verdict
from probes.shell import (
    CommandOutput,
    CommandRunner,
    first_lines,
    resolve_executable,
    run_command,
    tail_line,
)

Predicate = Callable[[CommandOutput], Union[bool, Verdict]]


def exit_zero(output: CommandOutput) -> bool:
    return output.ok


@dataclass(frozen=True)
class CommandCheck:
    """Run a command and decide the verdict with a predicate.

    ``executables`` are candidate locations for the program, tried in order.
    The predicate receives the captured output and returns either a boolean
    (pass/fail with the default messages) or a complete verdict.
    """

    executables: Sequence[str]
    args: Sequence[str]
    label: str
    predicate: Predicate = exit_zero
    missing_status: DiagnosticStatus = DiagnosticStatus.FAIL
    failure_status: DiagnosticStatus = DiagnosticStatus.FAIL
    timeout_s: float = DEFAULT_TIMEOUT_S
    runner: CommandRunner = field(default=run_command, repr=False)

    def __call__(self) -> Verdict:
        executable = resolve_executable(self.executables)
        if executable is None:
            return Verdict(
                status=self.missing_status,
                message=f"{self.label} not found ({', '.join(self.executables)})",
            )

        argv = (executable, *self.args)
        try:
            output = self.runner(argv, self.timeout_s)
        except FileNotFoundError:
            return Verdict(
                status=self.missing_status,
                message=f"{self.label} not found ({executable})",
            )
        except subprocess.TimeoutExpired:
            return Verdict(
                status=DiagnosticStatus.FAIL,
                message=f"{self.label} timed out after {int(self.timeout_s * 1000)}ms",
            )
        except OSError as exc:
            return Verdict(
                status=self.failure_status,
                message=f"{self.label} could not be executed: {exc}",
            )

        decision = self.predicate(output)
        if isinstance(decision, Verdict):
            return decision
        if decision:
            return Verdict(
                status=DiagnosticStatus.PASS,
                message=f"{self.label} OK",
                detail=first_lines(output.combined),
            )
        reason = tail_line(output.stderr) or tail_line(output.stdout)
        message = f"{self.label} failed (rc={output.returncode})"
        if reason:
            message = f"{message}: {reason}"
        return Verdict(
            status=self.failure_status,
            message=message,
            detail=first_lines(output.combined, limit=20),
        )


def _import_predicate(module: str, label: str, failure_status: DiagnosticStatus) -> Predicate:
    def _judge(output: CommandOutput) -> Verdict:
        if output.ok:
            version = tail_line(output.stdout)
            suffix = f" ({module} {version})" if version else ""
            return Verdict(status=DiagnosticStatus.PASS, message=f"{label} import OK{suffix}")
        return Verdict(
            status=failure_status,
            message=f"{label} import failed: {tail_line(output.stderr) or 'unknown error'}",
            detail=first_lines(output.stderr, limit=20),
        )

    return _judge


def python_import_check(
    module: str,
    label: str,
    *,
    timeout_s: float = DEFAULT_TIMEOUT_S,
    failure_status: DiagnosticStatus = DiagnosticStatus.FAIL,
    runner: CommandRunner = run_command,
) -> CommandCheck:
    """Import ``module`` in a child interpreter and report its version.

    A broken binding can crash the interpreter that imports it; the child
    process keeps that away from the runner.
    """

    script = (
        f"import {module} as m\n"
        "print(getattr(m, '__version__', ''))\n"
    )
    return CommandCheck(
        executables=(sys.executable,),
        args=("-c", script),
        label=f"Python {label}",
        predicate=_import_predicate(module, label, failure_status),
        missing_status=failure_status,
        failure_status=failure_status,
        timeout_s=timeout_s,
        runner=runner,
    )
