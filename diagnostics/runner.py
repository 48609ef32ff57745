"""Diagnostics runner utilities."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
import threading
import time

from core.logging import logger as LOGGER
from diagnostics.models import DiagnosticStatus, Probe, RunResult, Verdict
from diagnostics.registry import Registry


def _timed_out(probe: Probe) -> Verdict:
    return Verdict(
        status=DiagnosticStatus.FAIL,
        message=f"timed out after {int(probe.timeout_s * 1000)}ms",
        probe_name=probe.name,
    )


def evaluate_with_timeout(probe: Probe) -> Verdict:
    """Evaluate ``probe`` on a worker thread bounded by its timeout.

    A worker that outlives the timeout is abandoned; it is a daemon thread so a
    hung external tool cannot keep the process alive after the run.
    """

    outcome: list[Verdict] = []
    finished = threading.Event()

    def _target() -> None:
        try:
            outcome.append(probe.evaluate())
        finally:
            finished.set()

    worker = threading.Thread(target=_target, name=f"probe-{probe.name}", daemon=True)
    worker.start()
    if not finished.wait(probe.timeout_s):
        LOGGER.warning("Probe %s timed out after %.1fs", probe.name, probe.timeout_s)
        return _timed_out(probe)
    if not outcome:
        return Verdict(
            status=DiagnosticStatus.FAIL,
            message="Probe exited without a verdict",
            probe_name=probe.name,
        )
    return outcome[0]


def run_diagnostics(registry: Registry) -> RunResult:
    """Run every registered probe once, in order, and return the results."""

    started_at = datetime.now()
    probes = list(registry)
    verdicts: list[Verdict] = []
    interrupted = False

    for probe in probes:
        LOGGER.debug("Running probe %s (%s)", probe.name, probe.section)
        start = time.monotonic()
        try:
            verdict = evaluate_with_timeout(probe)
        except KeyboardInterrupt:
            LOGGER.warning("Run interrupted before %s completed", probe.name)
            interrupted = True
            break
        verdicts.append(replace(verdict, duration_s=time.monotonic() - start))

    not_run = tuple(probe.name for probe in probes[len(verdicts):])
    return RunResult(
        verdicts=tuple(verdicts),
        started_at=started_at,
        not_run=not_run,
        interrupted=interrupted,
        probe_sections={probe.name: probe.section for probe in probes},
    )
