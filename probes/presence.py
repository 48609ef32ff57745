"""Presence checks for files, directories, executables and packages."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
import glob
import os
import re
import subprocess

from diagnostics.models import DEFAULT_TIMEOUT_S, DiagnosticStatus, Verdict
from probes.shell import CommandRunner, first_lines, resolve_executable, run_command


class PresenceKind(str, Enum):
    """What a presence check looks for."""

    FILE = "file"
    DIRECTORY = "directory"
    EXECUTABLE = "executable"
    PACKAGE = "package"


PACKAGE_QUERY = ("dpkg", "-l")


def installed_packages(listing: str) -> list[str]:
    """Return package names marked installed (``ii``) in ``dpkg -l`` output."""

    names = []
    for line in listing.splitlines():
        fields = line.split()
        if len(fields) >= 2 and fields[0] == "ii":
            names.append(fields[1])
    return names


@dataclass(frozen=True)
class PresenceCheck:
    """Check that something named exists on the system.

    For ``PACKAGE`` checks ``targets`` holds regular expressions matched
    against installed package names. For the other kinds it holds candidate
    paths (glob patterns allowed) or executable names; the first hit wins.
    """

    kind: PresenceKind
    targets: Sequence[str]
    label: str
    missing_status: DiagnosticStatus = DiagnosticStatus.FAIL
    missing_hint: str = ""
    show_contents: bool = False
    ignore_case: bool = False
    timeout_s: float = DEFAULT_TIMEOUT_S
    runner: CommandRunner = field(default=run_command, repr=False)

    def __call__(self) -> Verdict:
        if self.kind is PresenceKind.PACKAGE:
            return self._check_packages()
        if self.kind is PresenceKind.EXECUTABLE:
            found = resolve_executable(self.targets)
        else:
            found = self._find_path()
        if found is None:
            return self._missing(", ".join(self.targets))

        detail = ""
        if self.show_contents and self.kind is PresenceKind.FILE:
            try:
                with open(found, encoding="utf-8", errors="replace") as handle:
                    detail = first_lines(handle.read())
            except OSError as exc:
                detail = f"Unreadable: {exc}"
        return Verdict(
            status=DiagnosticStatus.PASS,
            message=f"{self.label} present: {found}",
            detail=detail,
        )

    def _find_path(self) -> str | None:
        check = os.path.isdir if self.kind is PresenceKind.DIRECTORY else os.path.isfile
        for target in self.targets:
            for path in sorted(glob.glob(target)) or [target]:
                if check(path):
                    return path
        return None

    def _check_packages(self) -> Verdict:
        try:
            output = self.runner(PACKAGE_QUERY, self.timeout_s)
        except FileNotFoundError:
            return Verdict(
                status=DiagnosticStatus.SKIP,
                message=f"Package database tool not available; cannot check {self.label}",
            )
        except subprocess.TimeoutExpired:
            return Verdict(
                status=DiagnosticStatus.FAIL,
                message=f"timed out after {int(self.timeout_s * 1000)}ms querying packages",
            )

        flags = re.IGNORECASE if self.ignore_case else 0
        patterns = [re.compile(target, flags) for target in self.targets]
        matches = [
            name
            for name in installed_packages(output.stdout)
            if any(pattern.search(name) for pattern in patterns)
        ]
        if not matches:
            return self._missing(" | ".join(self.targets))
        return Verdict(
            status=DiagnosticStatus.PASS,
            message=f"{self.label} package(s) present",
            detail="\n".join(matches),
        )

    def _missing(self, searched: str) -> Verdict:
        message = f"{self.label} not found ({searched})"
        if self.missing_hint:
            message = f"{message}; {self.missing_hint}"
        return Verdict(status=self.missing_status, message=message)
