"""Tests for the command-line entry point."""

from __future__ import annotations

import json
import logging

import pytest

from core import logging as core_logging
from diagnostics.models import DiagnosticStatus, Probe, Verdict
from diagnostics.registry import Registry
from diagnostics.run import main


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch) -> None:
    for name in (
        "JETSON_SELFTEST_CONFIG",
        "JETSON_SELFTEST_LOG_DIR",
        "JETSON_SELFTEST_TIMEOUT",
        "JETSON_SELFTEST_SECTIONS",
    ):
        monkeypatch.delenv(name, raising=False)


def _fake_registry(*statuses: DiagnosticStatus):
    def _build(settings) -> Registry:
        return Registry(
            Probe(
                name=f"probe-{index}",
                section="CUDA",
                action=lambda status=status: Verdict(status=status, message=status.value.lower()),
                timeout_s=settings.timeout_for(f"probe-{index}"),
            )
            for index, status in enumerate(statuses)
        )

    return _build


def test_exit_code_zero_with_warnings(monkeypatch, tmp_path, capsys) -> None:
    """Warnings alone keep the exit code at 0 and the log is written."""

    monkeypatch.setattr(
        "diagnostics.run.build_registry",
        _fake_registry(DiagnosticStatus.PASS, DiagnosticStatus.WARN),
    )

    code = main(["--log-dir", str(tmp_path)])

    out = capsys.readouterr().out
    assert code == 0
    assert "PASS: 1  WARN: 1  FAIL: 0" in out
    logs = list(tmp_path.glob("test-sdk-*.log"))
    assert len(logs) == 1
    assert "[WARN] probe-1  warn" in logs[0].read_text(encoding="utf-8")
    assert out.rstrip().endswith(f"Log: {logs[0]}")


def test_exit_code_one_with_failure(monkeypatch, capsys) -> None:
    """Any FAIL verdict gives exit code 1."""

    monkeypatch.setattr(
        "diagnostics.run.build_registry",
        _fake_registry(DiagnosticStatus.PASS, DiagnosticStatus.FAIL),
    )

    code = main(["--no-log"])

    assert code == 1
    assert "[FAIL] probe-1  fail" in capsys.readouterr().out


def test_json_output(monkeypatch, capsys) -> None:
    """--json prints a parseable summary."""

    monkeypatch.setattr(
        "diagnostics.run.build_registry",
        _fake_registry(DiagnosticStatus.SKIP),
    )

    code = main(["--no-log", "--json"])

    payload = json.loads(capsys.readouterr().out)
    assert code == 0
    assert payload["counts"]["SKIP"] == 1
    assert payload["success"] is True
    assert payload["log"] is None


def test_timeout_flag_reaches_probes(monkeypatch, capsys) -> None:
    """--timeout overrides every probe's timeout."""

    seen = {}

    def _build(settings) -> Registry:
        seen["timeout"] = settings.timeout_for("anything")
        return Registry()

    monkeypatch.setattr("diagnostics.run.build_registry", _build)

    main(["--no-log", "--timeout", "7.5"])

    assert seen["timeout"] == 7.5


def test_unknown_section_is_configuration_error(capsys) -> None:
    """A bad section filter aborts with exit code 2 before running probes."""

    code = main(["--no-log", "--section", "does-not-exist"])

    assert code == 2
    assert "PASS:" not in capsys.readouterr().out


def test_list_prints_probes_without_running(capsys) -> None:
    """--list shows the registry grouped by section."""

    code = main(["--list", "--section", "cuDNN"])

    out = capsys.readouterr().out
    assert code == 0
    assert "### cuDNN ###" in out
    assert "cudnn-library (timeout 30s)" in out


def test_verbose_from_config_file(monkeypatch, tmp_path) -> None:
    """verbose: true in the config file turns on debug logging without --verbose."""

    config_file = tmp_path / "selftest.yaml"
    config_file.write_text("verbose: true\nwrite_log: false\n", encoding="utf-8")
    monkeypatch.setattr("diagnostics.run.build_registry", _fake_registry(DiagnosticStatus.PASS))

    try:
        code = main(["--config", str(config_file)])
        level = core_logging.logger.level
    finally:
        core_logging.set_verbose(False)

    assert code == 0
    assert level == logging.DEBUG


def test_json_output_names_the_log(monkeypatch, tmp_path, capsys) -> None:
    """With --json the written log path is part of the summary."""

    monkeypatch.setattr("diagnostics.run.build_registry", _fake_registry(DiagnosticStatus.PASS))

    main(["--log-dir", str(tmp_path), "--json"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["log"] == str(next(tmp_path.glob("test-sdk-*.log")))
