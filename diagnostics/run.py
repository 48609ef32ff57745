"""Command-line entry point for the Jetson self-test."""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path

from config.controller import ConfigController, ConfigError, SelftestSettings
from core import logging as core_logging
from core.logging import log_error
from diagnostics.models import RunResult
from diagnostics.registry import Registry, RegistryError
from diagnostics.reporter import (
    STATUS_STYLES,
    STATUS_TAGS,
    format_json,
    persist_report,
    render,
)
from diagnostics.runner import run_diagnostics
from jetson.registry import build_registry

EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""

    parser = argparse.ArgumentParser(
        prog="jetson-selftest",
        description="Check the CUDA / cuDNN / TensorRT / VPI / OpenCV stack of a Jetson image.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML file merged over the bundled defaults.",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for the timestamped report log.",
    )
    parser.add_argument(
        "--no-log",
        action="store_true",
        help="Do not write a report log file.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Timeout applied to every probe, overriding configuration.",
    )
    parser.add_argument(
        "--section",
        action="append",
        default=None,
        metavar="NAME",
        help="Run only probes in this section (repeatable).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print a JSON summary instead of the text report.",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List registered probes and exit.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show probe details for every line and debug logging.",
    )
    return parser.parse_args(argv)


def load_settings(args: argparse.Namespace) -> SelftestSettings:
    """Merge configuration file, environment and flags into settings."""

    settings = ConfigController(config_file=args.config).get_settings()
    if args.log_dir is not None:
        settings = replace(settings, log_dir=args.log_dir.expanduser())
    if args.no_log:
        settings = replace(settings, write_log=False)
    if args.timeout is not None:
        if args.timeout <= 0:
            raise ConfigError("--timeout must be positive")
        settings = replace(settings, timeout_override_s=args.timeout)
    if args.section:
        settings = replace(settings, sections=tuple(args.section))
    if args.verbose:
        settings = replace(settings, verbose=True)
    return settings


def format_listing(registry: Registry) -> str:
    lines = []
    for section in registry.sections():
        lines.append(f"### {section} ###")
        for probe in registry:
            if probe.section != section:
                continue
            suffix = f"  {probe.description}" if probe.description else ""
            lines.append(f"{probe.name} (timeout {probe.timeout_s:g}s){suffix}")
    return "\n".join(lines)


def emit_report(text: str) -> None:
    """Print the report, colouring status tags when rich is available."""

    if core_logging.Console is None or core_logging.Text is None:
        print(text)
        return

    stdout = core_logging.Console(highlight=False, soft_wrap=True)
    styles = {tag: STATUS_STYLES[status] for status, tag in STATUS_TAGS.items()}
    for line in text.splitlines():
        styled = core_logging.Text(line)
        style = styles.get(line[:6])
        if style is not None:
            styled.stylize(style, 0, 6)
        elif line.startswith("###"):
            styled.stylize("bold")
        stdout.print(styled)


def main(argv: list[str] | None = None) -> int:
    """Run the self-test and return an exit code."""

    args = parse_args(argv)
    core_logging.set_verbose(args.verbose)

    try:
        settings = load_settings(args)
        registry = build_registry(settings)
    except (ConfigError, RegistryError) as exc:
        log_error(f"Configuration error: {exc}")
        return EXIT_CONFIG_ERROR
    core_logging.set_verbose(settings.verbose)

    if args.list:
        print(format_listing(registry))
        return 0

    result: RunResult = run_diagnostics(registry)
    text, exit_code = render(result, verbose=settings.verbose)

    path: Path | None = None
    if settings.write_log:
        path = persist_report(
            text,
            log_dir=settings.log_dir,
            prefix=settings.log_prefix,
            started_at=result.started_at,
        )
    if args.json:
        print(format_json(result, log_path=path))
    else:
        emit_report(text)
        if path is not None:
            print(f"Log: {path}")

    if result.interrupted:
        return EXIT_INTERRUPTED
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
