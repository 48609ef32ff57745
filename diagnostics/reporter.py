"""Rendering and persistence of diagnostics reports."""

from __future__ import annotations

from datetime import datetime
import json
from pathlib import Path

from core.logging import log_warning
from diagnostics.models import DiagnosticStatus, RunResult, Verdict

STATUS_TAGS = {
    DiagnosticStatus.PASS: "[PASS]",
    DiagnosticStatus.WARN: "[WARN]",
    DiagnosticStatus.FAIL: "[FAIL]",
    DiagnosticStatus.SKIP: "[SKIP]",
}
NOT_RUN_TAG = "[----]"

STATUS_STYLES = {
    DiagnosticStatus.PASS: "green",
    DiagnosticStatus.WARN: "yellow",
    DiagnosticStatus.FAIL: "bold red",
    DiagnosticStatus.SKIP: "dim",
}

EXIT_OK = 0
EXIT_FAILURES = 1

_DETAIL_INDENT = "    "
_MAX_DETAIL_LINES = 20


def exit_code_for(result: RunResult) -> int:
    """Return 0 when no probe failed; warnings and skips never count."""

    return EXIT_OK if result.fail_count == 0 else EXIT_FAILURES


def _detail_lines(verdict: Verdict) -> list[str]:
    lines = [line.rstrip() for line in verdict.detail.splitlines() if line.strip()]
    if len(lines) > _MAX_DETAIL_LINES:
        hidden = len(lines) - _MAX_DETAIL_LINES
        lines = lines[:_MAX_DETAIL_LINES] + [f"... ({hidden} more lines)"]
    return [f"{_DETAIL_INDENT}{line}" for line in lines]


def format_verdict(verdict: Verdict) -> str:
    return f"{STATUS_TAGS[verdict.status]} {verdict.probe_name}  {verdict.message}"


def summary_line(result: RunResult) -> str:
    return f"PASS: {result.pass_count}  WARN: {result.warn_count}  FAIL: {result.fail_count}"


def format_report(result: RunResult, *, verbose: bool = False) -> str:
    """Return the human-readable report for ``result``.

    Only the header line carries the run timestamp; everything else depends on
    the verdicts alone.
    """

    lines = [f"Jetson self-test report ({result.started_at.isoformat(timespec='seconds')})"]

    entries: list[tuple[str, str, Verdict | None]] = [
        (result.probe_sections.get(verdict.probe_name, ""), verdict.probe_name, verdict)
        for verdict in result.verdicts
    ]
    entries.extend(
        (result.probe_sections.get(name, ""), name, None) for name in result.not_run
    )

    current_section: str | None = None
    for section, name, verdict in entries:
        if section != current_section:
            lines.append("")
            lines.append(f"### {section or 'General'} ###")
            current_section = section
        if verdict is None:
            lines.append(f"{NOT_RUN_TAG} {name}  not run")
            continue
        lines.append(format_verdict(verdict))
        if verbose or verdict.status in (DiagnosticStatus.FAIL, DiagnosticStatus.WARN):
            lines.extend(_detail_lines(verdict))

    lines.append("")
    lines.append("=== SUMMARY ===")
    if result.interrupted:
        lines.append(f"Run interrupted: {len(result.not_run)} probe(s) not run")
    if result.skip_count:
        lines.append(f"SKIP: {result.skip_count}")
    lines.append(summary_line(result))
    return "\n".join(lines)


def render(result: RunResult, *, verbose: bool = False) -> tuple[str, int]:
    """Return the console text and the process exit code for ``result``."""

    return format_report(result, verbose=verbose), exit_code_for(result)


def format_json(result: RunResult, log_path: Path | None = None) -> str:
    """Return a machine-readable summary of ``result``."""

    payload = {
        "started_at": result.started_at.isoformat(timespec="seconds"),
        "success": result.success,
        "interrupted": result.interrupted,
        "counts": {status.value: count for status, count in result.counts.items()},
        "verdicts": [
            {
                "name": verdict.probe_name,
                "section": result.probe_sections.get(verdict.probe_name, ""),
                "status": verdict.status.value,
                "message": verdict.message,
                "detail": verdict.detail,
                "duration_s": round(verdict.duration_s, 3),
            }
            for verdict in result.verdicts
        ],
        "not_run": list(result.not_run),
        "log": str(log_path) if log_path is not None else None,
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def report_path(log_dir: Path, prefix: str, started_at: datetime) -> Path:
    return log_dir / f"{prefix}-{started_at.strftime('%Y%m%d-%H%M%S')}.log"


def persist_report(
    text: str,
    *,
    log_dir: Path,
    prefix: str,
    started_at: datetime,
) -> Path | None:
    """Append ``text`` to the timestamped report log.

    Returns the log path, or ``None`` when the log cannot be written; the run
    then continues with console output only.
    """

    path = report_path(log_dir.expanduser(), prefix, started_at)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(text)
            if not text.endswith("\n"):
                handle.write("\n")
    except OSError as exc:
        log_warning(f"Report log unavailable ({path}): {exc}; console output only")
        return None
    return path
