"""Models for diagnostics probes and results."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Mapping

from core.logging import logger as LOGGER

DEFAULT_TIMEOUT_S = 30.0


class DiagnosticStatus(str, Enum):
    """Status for diagnostics checks."""

    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"
    SKIP = "SKIP"


@dataclass(frozen=True)
class Verdict:
    """Outcome of a single probe."""

    status: DiagnosticStatus
    message: str
    detail: str = ""
    probe_name: str = ""
    duration_s: float = 0.0

    def for_probe(self, name: str) -> "Verdict":
        """Return a copy attributed to ``name``."""

        if self.probe_name == name:
            return self
        return replace(self, probe_name=name)


@dataclass(frozen=True)
class Probe:
    """A named, sectioned unit of inspection."""

    name: str
    section: str
    action: Callable[[], Verdict]
    timeout_s: float = DEFAULT_TIMEOUT_S
    description: str = ""

    def evaluate(self) -> Verdict:
        """Run the probe action; never raises."""

        try:
            verdict = self.action()
        except Exception as exc:  # noqa: BLE001 - diagnostics must keep running
            LOGGER.exception("Probe %s raised", self.name)
            return Verdict(
                status=DiagnosticStatus.FAIL,
                message=f"Probe raised exception: {type(exc).__name__}: {exc}",
                probe_name=self.name,
            )
        if not isinstance(verdict, Verdict):
            return Verdict(
                status=DiagnosticStatus.FAIL,
                message=f"Probe returned {type(verdict).__name__} instead of a verdict",
                probe_name=self.name,
            )
        return verdict.for_probe(self.name)


@dataclass(frozen=True)
class RunResult:
    """Aggregate of one execution of the runner."""

    verdicts: tuple[Verdict, ...]
    started_at: datetime
    not_run: tuple[str, ...] = ()
    interrupted: bool = False
    probe_sections: Mapping[str, str] = field(default_factory=dict)

    @property
    def counts(self) -> Mapping[DiagnosticStatus, int]:
        tally = Counter(verdict.status for verdict in self.verdicts)
        return {status: tally.get(status, 0) for status in DiagnosticStatus}

    @property
    def pass_count(self) -> int:
        return self.counts[DiagnosticStatus.PASS]

    @property
    def warn_count(self) -> int:
        return self.counts[DiagnosticStatus.WARN]

    @property
    def fail_count(self) -> int:
        return self.counts[DiagnosticStatus.FAIL]

    @property
    def skip_count(self) -> int:
        return self.counts[DiagnosticStatus.SKIP]

    @property
    def success(self) -> bool:
        return self.fail_count == 0
