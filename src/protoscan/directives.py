"""Parse interface generation directives from configuration strings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from protoscan.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class Directive:
    """Generate `name` and everything reachable from it at `version`."""

    name: str
    version: int


def validate_version(version: object, name: str = "") -> int:
    """Return the version if it is a positive integer."""

    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise ConfigurationError(
            "INVALID_VERSION",
            f"Interface {name or '<unnamed>'} needs a positive integer version, got {version!r}",
            "Versions start at 1.",
        )
    return version


def parse_directive(raw: str) -> Directive:
    """Parse `"<interface> <version>"`, e.g. `"wl_seat 5"`."""

    fields = raw.split()
    if len(fields) != 2:
        raise ConfigurationError(
            "MALFORMED_VERSION_DIRECTIVE",
            f"Expected '<interface> <version>', got {raw!r}",
            "Write one directive per entry, e.g. 'wl_seat 5'.",
        )
    name, version_text = fields
    if not version_text.isdecimal() or int(version_text) < 1:
        raise ConfigurationError(
            "MALFORMED_VERSION_DIRECTIVE",
            f"Version for {name} must be a positive decimal integer, got {version_text!r}",
            "Write one directive per entry, e.g. 'wl_seat 5'.",
        )
    return Directive(name=name, version=int(version_text))


def parse_directives(raw_entries: Iterable[str]) -> list[Directive]:
    return [parse_directive(entry) for entry in raw_entries]
