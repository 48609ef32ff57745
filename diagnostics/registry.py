"""Ordered, read-only collection of diagnostics probes."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from diagnostics.models import Probe


class RegistryError(ValueError):
    """Raised when the probe set cannot be built."""


class Registry:
    """Probes grouped by section, kept in registration order."""

    def __init__(self, probes: Iterable[Probe] = ()) -> None:
        self._probes: list[Probe] = []
        self._names: set[str] = set()
        for probe in probes:
            self.add(probe)

    def add(self, probe: Probe) -> Probe:
        """Register ``probe``; duplicate names are rejected."""

        if not probe.name:
            raise RegistryError("Probe name must not be empty")
        if probe.name in self._names:
            raise RegistryError(f"Probe '{probe.name}' already registered")
        self._probes.append(probe)
        self._names.add(probe.name)
        return probe

    def __iter__(self) -> Iterator[Probe]:
        return iter(tuple(self._probes))

    def __len__(self) -> int:
        return len(self._probes)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def names(self) -> list[str]:
        return [probe.name for probe in self._probes]

    def sections(self) -> list[str]:
        """Return section labels in first-registration order."""

        seen: dict[str, None] = {}
        for probe in self._probes:
            seen.setdefault(probe.section, None)
        return list(seen)

    def filter_sections(self, sections: Iterable[str]) -> "Registry":
        """Return a registry holding only probes from ``sections``.

        Section names match case-insensitively. An empty selection keeps every
        probe; an unknown section name is a registry error.
        """

        wanted = {section.strip().lower() for section in sections if section.strip()}
        if not wanted:
            return Registry(self._probes)

        known = {section.lower() for section in self.sections()}
        unknown = sorted(wanted - known)
        if unknown:
            raise RegistryError(
                f"Unknown section(s): {', '.join(unknown)} "
                f"(known: {', '.join(self.sections())})"
            )
        return Registry(probe for probe in self._probes if probe.section.lower() in wanted)
