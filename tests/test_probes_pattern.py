"""Tests for text-pattern checks."""

from __future__ import annotations

import sys

import pytest

from diagnostics.models import DiagnosticStatus, Probe
from diagnostics.registry import Registry
from diagnostics.reporter import render
from diagnostics.runner import run_diagnostics
from probes.pattern import FlagState, TextPatternCheck, flag_verdict, scan_flag
from probes.shell import CommandOutput

CUDA_FLAG = r"(NVIDIA CUDA|Use CUDA)"

BUILD_INFO_YES = """
General configuration for OpenCV 4.8.1 =====================================
  Video I/O:
    GStreamer:                   YES (1.16.3)
  NVIDIA CUDA:                   YES (ver 10.2, CUFFT CUBLAS FAST_MATH)
    NVIDIA GPU arch:             53
"""


def _verdict(output: str):
    return flag_verdict(scan_flag(output, CUDA_FLAG), "OpenCV CUDA")


def test_explicit_yes_passes() -> None:
    """'Use CUDA: YES' is a pass."""

    assert _verdict("Use CUDA: YES").status is DiagnosticStatus.PASS


def test_build_information_yes_passes() -> None:
    """The real build-information layout is understood."""

    scan = scan_flag(BUILD_INFO_YES, CUDA_FLAG)

    assert scan.state is FlagState.ENABLED
    assert scan.line.startswith("NVIDIA CUDA:")


def test_explicit_no_fails_as_negated() -> None:
    """'Use CUDA: NO' fails with an 'explicitly disabled' message."""

    verdict = _verdict("General configuration\n  Use CUDA: NO\n")

    assert verdict.status is DiagnosticStatus.FAIL
    assert "explicitly disabled" in verdict.message
    assert verdict.detail == "Use CUDA: NO"


def test_absent_flag_fails_with_not_found_message() -> None:
    """Output without any CUDA line fails with a distinct message."""

    verdict = _verdict("General configuration\n  GStreamer: YES\n")

    assert verdict.status is DiagnosticStatus.FAIL
    assert "not found" in verdict.message
    assert "explicitly disabled" not in verdict.message


def test_unrecognized_value_fails() -> None:
    """A flag with an odd value is not a pass; it takes the absence severity."""

    verdict = _verdict("Use CUDA: maybe")

    assert verdict.status is DiagnosticStatus.FAIL
    assert "unrecognized value" in verdict.message


def test_empty_cuda_value_fails_the_run() -> None:
    """A CUDA line without a value makes the whole run exit non-zero."""

    check = TextPatternCheck(
        executables=(sys.executable,),
        args=("-c", "pass"),
        label="OpenCV CUDA",
        flag=CUDA_FLAG,
        runner=_runner_returning("  NVIDIA CUDA:   \n"),
    )
    result = run_diagnostics(Registry([Probe(name="opencv-cuda", section="OpenCV", action=check)]))

    text, code = render(result)

    assert code == 1
    assert "[FAIL] opencv-cuda" in text


def _runner_returning(stdout: str, returncode: int = 0):
    def _runner(argv, timeout_s):
        return CommandOutput(argv=tuple(argv), returncode=returncode, stdout=stdout, stderr="")

    return _runner


def test_substring_mode_finds_needle() -> None:
    """Substring mode matches case-insensitively."""

    check = TextPatternCheck(
        executables=(sys.executable,),
        args=(),
        label="NVIDIA runtime",
        needle="nvidia",
        missing_status=DiagnosticStatus.WARN,
        runner=_runner_returning("Runtimes: NVIDIA runc\n"),
    )

    assert check().status is DiagnosticStatus.PASS


def test_substring_mode_missing_uses_configured_severity() -> None:
    """A missing needle yields the configured absence severity."""

    check = TextPatternCheck(
        executables=(sys.executable,),
        args=(),
        label="NVIDIA runtime",
        needle="nvidia",
        missing_status=DiagnosticStatus.WARN,
        runner=_runner_returning("Runtimes: runc\n"),
    )

    assert check().status is DiagnosticStatus.WARN


def test_missing_tool_uses_tool_missing_status() -> None:
    """An unresolvable executable yields the tool-missing severity."""

    check = TextPatternCheck(
        executables=("definitely-not-a-real-tool-xyz",),
        args=(),
        label="Docker info",
        needle="nvidia",
        tool_missing_status=DiagnosticStatus.WARN,
    )

    verdict = check()

    assert verdict.status is DiagnosticStatus.WARN
    assert "tool not found" in verdict.message


def test_prelude_short_circuits() -> None:
    """A prelude verdict replaces pattern matching."""

    check = TextPatternCheck(
        executables=(sys.executable,),
        args=(),
        label="OpenCV CUDA",
        flag=CUDA_FLAG,
        prelude=lambda output, rc: _verdict("Use CUDA: NO") if rc else None,
        runner=_runner_returning("ModuleNotFoundError: No module named 'cv2'", returncode=1),
    )

    assert "explicitly disabled" in check().message


def test_flag_and_needle_are_exclusive() -> None:
    """Exactly one matching mode must be configured."""

    with pytest.raises(ValueError):
        TextPatternCheck(executables=("x",), args=(), label="bad")
