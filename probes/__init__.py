"""Reusable probe checks: presence, command, library load and text pattern."""

from probes.command import CommandCheck, exit_zero, python_import_check
from probes.library import LibraryLoadCheck, SubprocessLoader
from probes.pattern import FlagScan, FlagState, TextPatternCheck, scan_flag
from probes.presence import PresenceCheck, PresenceKind
from probes.shell import CommandOutput, run_command

__all__ = [
    "CommandCheck",
    "CommandOutput",
    "FlagScan",
    "FlagState",
    "LibraryLoadCheck",
    "PresenceCheck",
    "PresenceKind",
    "SubprocessLoader",
    "TextPatternCheck",
    "exit_zero",
    "python_import_check",
    "run_command",
    "scan_flag",
]
