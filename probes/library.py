"""Shared-library load checks."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
import subprocess
import sys
import time
from typing import Callable

from diagnostics.models import DEFAULT_TIMEOUT_S, DiagnosticStatus, Verdict
from probes.shell import CommandRunner, run_command, tail_line

# Loader contract matches ctypes.CDLL: return on success, raise OSError otherwise.
# The second argument is the time left for this attempt, in seconds.
Loader = Callable[[str, float], object]

_DLOPEN_SCRIPT = "import ctypes, sys\nctypes.CDLL(sys.argv[1])\n"


@dataclass(frozen=True)
class SubprocessLoader:
    """Load a library with ``ctypes.CDLL`` inside a child interpreter.

    A segfault in a library constructor then kills the child, not the runner.
    """

    runner: CommandRunner = field(default=run_command, repr=False)

    def __call__(self, name: str, timeout_s: float = DEFAULT_TIMEOUT_S) -> None:
        argv = (sys.executable, "-c", _DLOPEN_SCRIPT, name)
        try:
            output = self.runner(argv, timeout_s)
        except subprocess.TimeoutExpired as exc:
            raise OSError(f"dlopen of {name} timed out after {timeout_s:.2g}s") from exc
        if output.returncode < 0:
            raise OSError(f"dlopen of {name} crashed the loader (signal {-output.returncode})")
        if output.returncode != 0:
            raise OSError(tail_line(output.stderr) or f"dlopen of {name} failed")


@dataclass(frozen=True)
class LibraryLoadCheck:
    """Try each candidate library name in order; any successful load passes.

    All attempts share one ``timeout_s`` budget. Candidates left when it runs
    out are not tried.
    """

    candidates: Sequence[str]
    label: str
    missing_status: DiagnosticStatus = DiagnosticStatus.FAIL
    timeout_s: float = DEFAULT_TIMEOUT_S
    loader: Loader = field(default_factory=SubprocessLoader, repr=False)

    def __call__(self) -> Verdict:
        deadline = time.monotonic() + self.timeout_s
        errors: list[str] = []
        for name in self.candidates:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                errors.append(f"{name}: not tried, time budget exhausted")
                break
            try:
                self.loader(name, remaining)
            except OSError as exc:
                errors.append(f"{name}: {exc}")
                continue
            return Verdict(
                status=DiagnosticStatus.PASS,
                message=f"{self.label} shared library loadable ({name})",
            )
        return Verdict(
            status=self.missing_status,
            message=(
                f"{self.label} shared library not loadable "
                f"(tried {', '.join(self.candidates)})"
            ),
            detail="\n".join(errors),
        )
