"""Package-name patterns used to claim ports for a registry.

A pattern is either an exact port name (``zlib``) or a literal prefix
followed by a single trailing wildcard (``boost-*``, ``*``).
"""

from __future__ import annotations

import re

_NAME = r"[a-z0-9]+(?:-[a-z0-9]+)*"
_NAME_RE = re.compile(rf"^{_NAME}$")
_PATTERN_RE = re.compile(rf"^(?:{_NAME}-?)?\*$|^{_NAME}$")


def is_port_name(name: str) -> bool:
    """Lowercase alphanumerics separated by single dashes."""
    return bool(_NAME_RE.fullmatch(name))


def is_package_pattern(pattern: str) -> bool:
    """Check that a pattern is a valid port name or a prefix wildcard."""
    return bool(_PATTERN_RE.fullmatch(pattern))


def package_pattern_matches(name: str, pattern: str) -> bool:
    if pattern.endswith("*"):
        return name.startswith(pattern[:-1])
    return name == pattern


def package_match_prefix(name: str, pattern: str) -> int:
    """Score how specifically ``pattern`` claims ``name``.

    Returns the length of the literal part of the pattern when it matches
    (the whole pattern for an exact match) and 0 when it does not.
    """
    if not package_pattern_matches(name, pattern):
        return 0
    return len(pattern) - 1 if pattern.endswith("*") else len(pattern)
