"""Tests for the diagnostics runner."""

from __future__ import annotations

import threading
import time

from diagnostics.models import DiagnosticStatus, Probe, Verdict
from diagnostics.registry import Registry
from diagnostics.runner import evaluate_with_timeout, run_diagnostics


def _passing(message: str = "ok"):
    def _action() -> Verdict:
        return Verdict(status=DiagnosticStatus.PASS, message=message)

    return _action


def _raising() -> Verdict:
    raise RuntimeError("library exploded")


def test_run_yields_one_verdict_per_probe_in_order() -> None:
    """Every registered probe yields exactly one verdict, in registration order."""

    names = ["b-first", "a-second", "c-third", "d-fourth"]
    registry = Registry(
        Probe(name=name, section="S1" if i < 2 else "S2", action=_passing(name))
        for i, name in enumerate(names)
    )

    result = run_diagnostics(registry)

    assert [verdict.probe_name for verdict in result.verdicts] == names
    assert len(result.verdicts) == len(registry)
    assert result.not_run == ()
    assert not result.interrupted


def test_raising_probe_becomes_fail_and_run_continues() -> None:
    """An action that raises yields FAIL without stopping later probes."""

    registry = Registry(
        [
            Probe(name="boom", section="S", action=_raising),
            Probe(name="after", section="S", action=_passing()),
        ]
    )

    result = run_diagnostics(registry)

    boom, after = result.verdicts
    assert boom.status is DiagnosticStatus.FAIL
    assert "library exploded" in boom.message
    assert boom.probe_name == "boom"
    assert after.status is DiagnosticStatus.PASS


def test_non_verdict_return_is_fail() -> None:
    """An action returning something other than a verdict yields FAIL."""

    probe = Probe(name="odd", section="S", action=lambda: "PASS")  # type: ignore[arg-type, return-value]

    verdict = run_diagnostics(Registry([probe])).verdicts[0]

    assert verdict.status is DiagnosticStatus.FAIL
    assert "str" in verdict.message


def test_hung_probe_times_out_and_runner_moves_on() -> None:
    """A probe exceeding its timeout yields FAIL 'timed out' within a bounded delay."""

    release = threading.Event()

    def _hang() -> Verdict:
        release.wait(10)
        return Verdict(status=DiagnosticStatus.PASS, message="late")

    registry = Registry(
        [
            Probe(name="hung", section="S", action=_hang, timeout_s=0.2),
            Probe(name="next", section="S", action=_passing()),
        ]
    )

    start = time.monotonic()
    result = run_diagnostics(registry)
    elapsed = time.monotonic() - start
    release.set()

    hung, nxt = result.verdicts
    assert hung.status is DiagnosticStatus.FAIL
    assert "timed out" in hung.message
    assert "200ms" in hung.message
    assert nxt.status is DiagnosticStatus.PASS
    assert elapsed < 2.0


def test_verdict_is_stamped_with_probe_name() -> None:
    """Verdicts carry the registered probe name even if the action omits it."""

    verdict = evaluate_with_timeout(Probe(name="named", section="S", action=_passing()))

    assert verdict.probe_name == "named"


def test_interrupt_keeps_completed_verdicts(monkeypatch) -> None:
    """Cancellation keeps finished verdicts and lists the rest as not run."""

    registry = Registry(
        [
            Probe(name="done", section="S", action=_passing()),
            Probe(name="stop", section="S", action=_passing()),
            Probe(name="never", section="S", action=_passing()),
        ]
    )
    calls = {"count": 0}

    def _fake(probe: Probe) -> Verdict:
        calls["count"] += 1
        if probe.name == "stop":
            raise KeyboardInterrupt
        return evaluate_with_timeout(probe)

    monkeypatch.setattr("diagnostics.runner.evaluate_with_timeout", _fake)

    result = run_diagnostics(registry)

    assert [verdict.probe_name for verdict in result.verdicts] == ["done"]
    assert result.not_run == ("stop", "never")
    assert result.interrupted
    assert calls["count"] == 2


def test_counts_and_success_are_aggregated() -> None:
    """Counts come from the verdict sequence; WARN and SKIP keep success."""

    def _status(status: DiagnosticStatus):
        return lambda: Verdict(status=status, message=status.value)

    registry = Registry(
        [
            Probe(name="p", section="S", action=_status(DiagnosticStatus.PASS)),
            Probe(name="w", section="S", action=_status(DiagnosticStatus.WARN)),
            Probe(name="s", section="S", action=_status(DiagnosticStatus.SKIP)),
        ]
    )

    result = run_diagnostics(registry)

    assert (result.pass_count, result.warn_count, result.fail_count, result.skip_count) == (1, 1, 0, 1)
    assert result.success
