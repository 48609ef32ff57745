"""Configuration controller for YAML-based settings."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from diagnostics.models import DEFAULT_TIMEOUT_S, DiagnosticStatus

DEFAULT_CONFIG_FILE = Path(__file__).with_name("default.yaml")

ENV_CONFIG = "JETSON_SELFTEST_CONFIG"
ENV_LOG_DIR = "JETSON_SELFTEST_LOG_DIR"
ENV_TIMEOUT = "JETSON_SELFTEST_TIMEOUT"
ENV_SECTIONS = "JETSON_SELFTEST_SECTIONS"

_SEVERITIES = {
    "warn": DiagnosticStatus.WARN,
    "fail": DiagnosticStatus.FAIL,
}


class ConfigError(ValueError):
    """Raised for malformed configuration."""


def _flag(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{key} must be true or false, got {value!r}")
    return value


@dataclass(frozen=True)
class ProbeOverride:
    """Per-probe settings taken from the ``probes`` table."""

    severity: DiagnosticStatus | None = None
    timeout_s: float | None = None
    enabled: bool = True


@dataclass(frozen=True)
class SelftestSettings:
    """Validated settings for one run."""

    log_dir: Path = Path("/var/log/jetpack-selftest")
    log_prefix: str = "test-sdk"
    write_log: bool = True
    default_timeout_s: float = DEFAULT_TIMEOUT_S
    timeout_override_s: float | None = None
    verbose: bool = False
    sections: tuple[str, ...] = ()
    probes: Mapping[str, ProbeOverride] = field(default_factory=dict)

    def override_for(self, name: str) -> ProbeOverride:
        return self.probes.get(name, ProbeOverride())

    def timeout_for(self, name: str) -> float:
        """Return the timeout for ``name``; a global override wins."""

        if self.timeout_override_s is not None:
            return self.timeout_override_s
        override = self.override_for(name).timeout_s
        return override if override is not None else self.default_timeout_s

    def severity_for(self, name: str, default: DiagnosticStatus) -> DiagnosticStatus:
        return self.override_for(name).severity or default

    def is_enabled(self, name: str) -> bool:
        return self.override_for(name).enabled


class ConfigController:
    """Load defaults, an optional config file and environment overrides."""

    def __init__(
        self,
        config_file: Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._environ = dict(os.environ if environ is None else environ)
        if config_file is None and self._environ.get(ENV_CONFIG):
            config_file = Path(self._environ[ENV_CONFIG])
        self.config_file = config_file
        self.config: dict[str, Any] = {}
        self.load_config()

    def load_config(self) -> None:
        """Load configuration from the bundled defaults and the config file."""

        config = self._read_yaml(DEFAULT_CONFIG_FILE)
        if self.config_file is not None:
            if not self.config_file.exists():
                raise ConfigError(f"Config file not found: {self.config_file}")
            override_config = self._read_yaml(self.config_file)
            if override_config:
                config = self._deep_merge(config, override_config)

        self.config = self._apply_environment(config)

    def get_settings(self) -> SelftestSettings:
        """Validate the loaded configuration into settings."""

        config = self.config
        try:
            timeout = float(config.get("default_timeout_s", DEFAULT_TIMEOUT_S))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"default_timeout_s must be a number: {exc}") from exc
        if timeout <= 0:
            raise ConfigError("default_timeout_s must be positive")

        sections = config.get("sections") or []
        if isinstance(sections, str):
            sections = [sections]
        if not isinstance(sections, list):
            raise ConfigError("sections must be a list of section names")

        return SelftestSettings(
            log_dir=Path(str(config.get("log_dir", "/var/log/jetpack-selftest"))).expanduser(),
            log_prefix=str(config.get("log_prefix", "test-sdk")),
            write_log=_flag(config.get("write_log", True), "write_log"),
            default_timeout_s=timeout,
            verbose=_flag(config.get("verbose", False), "verbose"),
            sections=tuple(str(section) for section in sections),
            probes=self._parse_probe_overrides(config.get("probes") or {}),
        )

    def _read_yaml(self, path: Path) -> dict[str, Any]:
        try:
            with path.open("r", encoding="utf-8") as file:
                data = yaml.safe_load(file) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
        except OSError as exc:
            raise ConfigError(f"Cannot read {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping at the top level")
        return data

    def _apply_environment(self, config: dict[str, Any]) -> dict[str, Any]:
        merged = dict(config)
        if self._environ.get(ENV_LOG_DIR):
            merged["log_dir"] = self._environ[ENV_LOG_DIR]
        if self._environ.get(ENV_TIMEOUT):
            merged["default_timeout_s"] = self._environ[ENV_TIMEOUT]
        if self._environ.get(ENV_SECTIONS):
            merged["sections"] = [
                part.strip() for part in self._environ[ENV_SECTIONS].split(",") if part.strip()
            ]
        return merged

    def _parse_probe_overrides(self, raw: Any) -> dict[str, ProbeOverride]:
        if not isinstance(raw, dict):
            raise ConfigError("probes must be a mapping of probe name to settings")

        overrides: dict[str, ProbeOverride] = {}
        for name, values in raw.items():
            values = values or {}
            if not isinstance(values, dict):
                raise ConfigError(f"probes.{name} must be a mapping")
            unknown = set(values) - {"severity", "timeout_s", "enabled"}
            if unknown:
                raise ConfigError(f"probes.{name}: unknown key(s) {', '.join(sorted(unknown))}")

            severity = None
            if values.get("severity") is not None:
                severity = _SEVERITIES.get(str(values["severity"]).lower())
                if severity is None:
                    raise ConfigError(f"probes.{name}.severity must be 'warn' or 'fail'")

            timeout_s = None
            if values.get("timeout_s") is not None:
                try:
                    timeout_s = float(values["timeout_s"])
                except (TypeError, ValueError) as exc:
                    raise ConfigError(f"probes.{name}.timeout_s must be a number") from exc
                if timeout_s <= 0:
                    raise ConfigError(f"probes.{name}.timeout_s must be positive")

            overrides[str(name)] = ProbeOverride(
                severity=severity,
                timeout_s=timeout_s,
                enabled=_flag(values.get("enabled", True), f"probes.{name}.enabled"),
            )
        return overrides

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge dictionaries, overriding base values with override values."""

        merged = dict(base)
        for key, value in override.items():
            if (
                key in merged
                and isinstance(merged[key], dict)
                and isinstance(value, dict)
            ):
                merged[key] = self._deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
