"""Version value types shared by every registry backend.

Versions are opaque to the registry layer: they are compared for equality
only. Ordering is the job of the dependency solver.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class VersionScheme(Enum):
    """Comparison family a version string belongs to, keyed by its JSON field."""

    RELAXED = "version"
    SEMVER = "version-semver"
    DATE = "version-date"
    STRING = "version-string"


VERSION_FIELDS = tuple(s.value for s in VersionScheme)
PORT_VERSION_FIELD = "port-version"


@dataclass(frozen=True)
class Version:
    """A version string plus the port revision on top of it."""

    text: str
    port_version: int = 0

    def __str__(self) -> str:
        if self.port_version:
            return f"{self.text}#{self.port_version}"
        return self.text

    @classmethod
    def parse(cls, value: str) -> Version:
        """Parse ``1.2.3`` or ``1.2.3#4`` as typed on a command line."""
        text, sep, port = value.rpartition("#")
        if not sep:
            return cls(value)
        if not port.isdigit():
            raise ValueError(f"Invalid port version in '{value}'")
        return cls(text, int(port))


@dataclass(frozen=True)
class SchemedVersion:
    scheme: VersionScheme
    version: Version


def parse_version_fields(obj: dict, where: str = "") -> tuple[SchemedVersion | None, list[str]]:
    """Read the version-family fields out of a JSON object.

    Returns the parsed version (or None) and a list of issue messages.
    Exactly one of the four version fields must be present; ``port-version``
    is an optional non-negative integer.
    """
    prefix = f"{where}: " if where else ""
    issues: list[str] = []

    present = [f for f in VERSION_FIELDS if f in obj]
    if not present:
        issues.append(
            f"{prefix}missing version field (expected one of {', '.join(VERSION_FIELDS)})"
        )
        return None, issues
    if len(present) > 1:
        issues.append(f"{prefix}multiple version fields present: {', '.join(present)}")
        return None, issues

    field_name = present[0]
    text = obj[field_name]
    if not isinstance(text, str) or not text:
        issues.append(f"{prefix}'{field_name}' must be a non-empty string")
        return None, issues
    if "#" in text:
        issues.append(
            f"{prefix}'{field_name}' must not contain '#'; use the '{PORT_VERSION_FIELD}' field"
        )
        return None, issues

    port_version = obj.get(PORT_VERSION_FIELD, 0)
    if isinstance(port_version, bool) or not isinstance(port_version, int) or port_version < 0:
        issues.append(f"{prefix}'{PORT_VERSION_FIELD}' must be a non-negative integer")
        return None, issues

    return SchemedVersion(VersionScheme(field_name), Version(text, port_version)), issues
