"""Health-check engine: probes, registry, runner and reporter."""

from diagnostics.models import DiagnosticStatus, Probe, RunResult, Verdict
from diagnostics.registry import Registry, RegistryError
from diagnostics.reporter import format_json, format_report, persist_report, render
from diagnostics.runner import run_diagnostics

__all__ = [
    "DiagnosticStatus",
    "Probe",
    "Registry",
    "RegistryError",
    "RunResult",
    "Verdict",
    "format_json",
    "format_report",
    "persist_report",
    "render",
    "run_diagnostics",
]
