"""Checks that scan captured tool output for a required flag or substring."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
import re
import subprocess
from typing import Callable

from diagnostics.models import DEFAULT_TIMEOUT_S, DiagnosticStatus, Verdict
from probes.shell import CommandRunner, resolve_executable, run_command, tail_line

_YES = re.compile(r"^(yes|on|true|enabled?)\b", re.IGNORECASE)
_NO = re.compile(r"^(no|off|false|disabled?)\b", re.IGNORECASE)


class FlagState(str, Enum):
    """Result of scanning output for a flag line."""

    ENABLED = "enabled"
    NEGATED = "negated"
    AMBIGUOUS = "ambiguous"
    ABSENT = "absent"


@dataclass(frozen=True)
class FlagScan:
    state: FlagState
    line: str = ""


def scan_flag(output: str, pattern: str | re.Pattern[str]) -> FlagScan:
    """Find the first line matching ``pattern`` and classify its value.

    The value is whatever follows the match, minus separators, so both
    ``Use CUDA: NO`` and ``NVIDIA CUDA:   YES (ver 10.2)`` are understood.
    """

    regex = re.compile(pattern, re.IGNORECASE) if isinstance(pattern, str) else pattern
    for raw_line in output.splitlines():
        match = regex.search(raw_line)
        if match is None:
            continue
        line = raw_line.strip()
        value = raw_line[match.end():].strip().lstrip(":=").strip()
        if _YES.match(value):
            return FlagScan(FlagState.ENABLED, line)
        if _NO.match(value):
            return FlagScan(FlagState.NEGATED, line)
        return FlagScan(FlagState.AMBIGUOUS, line)
    return FlagScan(FlagState.ABSENT)


def contains_text(output: str, needle: str, *, ignore_case: bool = True) -> str | None:
    """Return the first line containing ``needle``, or ``None``."""

    wanted = needle.lower() if ignore_case else needle
    for line in output.splitlines():
        haystack = line.lower() if ignore_case else line
        if wanted in haystack:
            return line.strip()
    return None


def flag_verdict(
    scan: FlagScan,
    label: str,
    missing_status: DiagnosticStatus = DiagnosticStatus.FAIL,
) -> Verdict:
    """Map a flag scan to a verdict; only an explicit YES passes."""

    if scan.state is FlagState.ENABLED:
        return Verdict(status=DiagnosticStatus.PASS, message=f"{label} enabled", detail=scan.line)
    if scan.state is FlagState.NEGATED:
        return Verdict(
            status=DiagnosticStatus.FAIL,
            message=f"{label} explicitly disabled",
            detail=scan.line,
        )
    if scan.state is FlagState.AMBIGUOUS:
        return Verdict(
            status=missing_status,
            message=f"{label} flag present with unrecognized value",
            detail=scan.line,
        )
    return Verdict(status=missing_status, message=f"{label} flag not found in output")


def substring_verdict(
    output: str,
    needle: str,
    label: str,
    missing_status: DiagnosticStatus = DiagnosticStatus.WARN,
) -> Verdict:
    line = contains_text(output, needle)
    if line is not None:
        return Verdict(status=DiagnosticStatus.PASS, message=f"{label} found", detail=line)
    return Verdict(status=missing_status, message=f"{label} not found in output ('{needle}')")


@dataclass(frozen=True)
class TextPatternCheck:
    """Run a command and look for a flag or substring in its output.

    With ``flag`` set the matched line must carry a YES/NO style value; with
    ``needle`` set a case-insensitive substring is enough. ``prelude`` may
    inspect the raw output first and short-circuit with its own verdict, e.g.
    when the command reports that a component is missing entirely.
    """

    executables: Sequence[str]
    args: Sequence[str]
    label: str
    flag: str | None = None
    needle: str | None = None
    missing_status: DiagnosticStatus = DiagnosticStatus.FAIL
    tool_missing_status: DiagnosticStatus = DiagnosticStatus.WARN
    prelude: Callable[[str, int], Verdict | None] | None = None
    timeout_s: float = DEFAULT_TIMEOUT_S
    runner: CommandRunner = field(default=run_command, repr=False)

    def __post_init__(self) -> None:
        if (self.flag is None) == (self.needle is None):
            raise ValueError("TextPatternCheck needs exactly one of flag or needle")

    def __call__(self) -> Verdict:
        executable = resolve_executable(self.executables)
        if executable is None:
            return Verdict(
                status=self.tool_missing_status,
                message=f"{self.label}: tool not found ({', '.join(self.executables)})",
            )
        try:
            output = self.runner((executable, *self.args), self.timeout_s)
        except FileNotFoundError:
            return Verdict(
                status=self.tool_missing_status,
                message=f"{self.label}: tool not found ({executable})",
            )
        except subprocess.TimeoutExpired:
            return Verdict(
                status=DiagnosticStatus.FAIL,
                message=f"{self.label} timed out after {int(self.timeout_s * 1000)}ms",
            )

        if self.prelude is not None:
            early = self.prelude(output.combined, output.returncode)
            if early is not None:
                return early
        return self.judge(output.combined)

    def judge(self, output: str) -> Verdict:
        """Decide the verdict from captured text alone."""

        if self.flag is not None:
            return flag_verdict(scan_flag(output, self.flag), self.label, self.missing_status)
        verdict = substring_verdict(output, self.needle or "", self.label, self.missing_status)
        if verdict.status is not DiagnosticStatus.PASS and not verdict.detail:
            hint = tail_line(output)
            if hint:
                return Verdict(status=verdict.status, message=verdict.message, detail=hint)
        return verdict
