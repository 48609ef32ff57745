"""Subprocess helpers shared by command-backed probes."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
import glob
import os
import shutil
import subprocess
from typing import Callable


@dataclass(frozen=True)
class CommandOutput:
    """Captured result of an external command."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def combined(self) -> str:
        if self.stdout and self.stderr:
            return f"{self.stdout.rstrip()}\n{self.stderr.rstrip()}"
        return self.stdout or self.stderr

    @property
    def ok(self) -> bool:
        return self.returncode == 0


CommandRunner = Callable[[Sequence[str], float], CommandOutput]


def run_command(argv: Sequence[str], timeout_s: float) -> CommandOutput:
    """Run ``argv`` and capture its output.

    Raises ``FileNotFoundError`` when the executable is missing and
    ``subprocess.TimeoutExpired`` when it outlives ``timeout_s``; the child is
    killed in that case.
    """

    result = subprocess.run(
        list(argv),
        check=False,
        capture_output=True,
        text=True,
        errors="replace",
        timeout=timeout_s,
        stdin=subprocess.DEVNULL,
    )
    return CommandOutput(
        argv=tuple(argv),
        returncode=result.returncode,
        stdout=result.stdout or "",
        stderr=result.stderr or "",
    )


def is_executable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


def resolve_executable(candidates: Iterable[str]) -> str | None:
    """Return the first usable executable among ``candidates``.

    Candidates containing a path separator are checked on disk (glob patterns
    allowed); bare names are looked up on ``PATH``.
    """

    for candidate in candidates:
        if os.sep in candidate:
            for path in sorted(glob.glob(candidate)) or [candidate]:
                if is_executable(path):
                    return path
            continue
        resolved = shutil.which(candidate)
        if resolved is not None:
            return resolved
    return None


def first_lines(text: str, limit: int = 10) -> str:
    lines = [line for line in text.splitlines() if line.strip()]
    return "\n".join(lines[:limit])


def tail_line(text: str) -> str:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    return lines[-1] if lines else ""
