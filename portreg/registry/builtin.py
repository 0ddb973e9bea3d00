"""Builtin registry: the ports tree shipped with the package manager itself.

Without a baseline the registry answers from the ports tree as it is
checked out right now: every port has exactly one version. With a baseline
(a revision of the builtin repository) the per-port version databases are
used and older versions are extracted from the builtin repository's own
object store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import ClassVar

from portreg.errors import BaselineMissingError, VersionNotFoundError
from portreg.paths import RegistryPaths
from portreg.registry.entries import BuiltinGitEntry, PortTreeEntry, RegistryEntry
from portreg.registry.models import VersionDbType
from portreg.registry.patterns import is_port_name
from portreg.registry.versiondb import (
    BASELINE_RELATIVE_PATH,
    DEFAULT_BASELINE_KEY,
    parse_baseline,
    parse_version_db,
    read_port_manifest,
    version_db_relative_path,
)
from portreg.utils.git_ops import is_git_commit_sha
from portreg.versions import SchemedVersion, Version

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuiltinRegistry:
    kind: ClassVar[str] = "builtin"

    paths: RegistryPaths = field(compare=False)
    baseline: str = ""
    _baseline_cache: dict = field(default_factory=dict, init=False, repr=False, compare=False)


def make_builtin_registry(paths: RegistryPaths, baseline: str = "") -> BuiltinRegistry:
    """Create the builtin registry, optionally pinned to a baseline.

    ``baseline`` is any revision of the builtin repository (commit id, tag or
    branch). A full commit id is preferred because it cannot move.
    """
    if baseline and not is_git_commit_sha(baseline):
        logger.debug(f"Builtin baseline '{baseline}' is not a commit id; resolving it as a revision")
    return BuiltinRegistry(paths=paths, baseline=baseline)


def builtin_port_entry(registry: BuiltinRegistry, port_name: str) -> RegistryEntry | None:
    paths = registry.paths
    if registry.baseline:
        db_path = paths.builtin_root / version_db_relative_path(port_name)
        if db_path.is_file():
            logger.debug(f"Reading builtin version database {db_path}")
            db_entries = parse_version_db(
                db_path.read_text(encoding="utf-8"), VersionDbType.GIT, origin=str(db_path)
            )
            return BuiltinGitEntry(port_name, db_entries, paths)
    return _port_tree_entry(paths, port_name)


def _port_tree_entry(paths: RegistryPaths, port_name: str) -> PortTreeEntry | None:
    port_dir = paths.builtin_ports_dir / port_name
    if not port_dir.is_dir():
        return None
    schemed = read_port_manifest(port_dir)
    if schemed is None:
        return None
    return PortTreeEntry(port_name, schemed.version, port_dir)


def builtin_baseline_version(registry: BuiltinRegistry, port_name: str) -> Version:
    """Baseline version of a port.

    With a baseline revision, the baseline file committed at that revision
    decides. Without one, the checked-out baseline file decides, and a tree
    that has no baseline file falls back to the port's own manifest.
    """
    paths = registry.paths
    if not registry.baseline and (paths.builtin_root / BASELINE_RELATIVE_PATH).is_file():
        baseline = get_builtin_baseline(paths)
        if port_name not in baseline:
            raise BaselineMissingError(
                f"Port {port_name} has no entry in the builtin baseline.",
                context={"file": str(paths.builtin_root / BASELINE_RELATIVE_PATH)},
            )
        return baseline[port_name]

    if not registry.baseline:
        entry = _port_tree_entry(paths, port_name)
        if entry is None:
            raise BaselineMissingError(
                f"Port {port_name} does not exist in the builtin ports tree.",
                context={"ports": str(registry.paths.builtin_ports_dir)},
            )
        return entry.get_port_versions()[0]

    baseline = _builtin_baseline_at(registry)
    if port_name not in baseline:
        raise BaselineMissingError(
            f"Port {port_name} has no entry in the builtin baseline.",
            context={"baseline": registry.baseline},
        )
    return baseline[port_name]


def _builtin_baseline_at(registry: BuiltinRegistry) -> dict[str, Version]:
    if "baseline" not in registry._baseline_cache:
        text = registry.paths.show_from_builtin(registry.baseline, BASELINE_RELATIVE_PATH)
        if text is None:
            raise BaselineMissingError(
                f"The builtin repository has no {BASELINE_RELATIVE_PATH} at the baseline commit.",
                context={"baseline": registry.baseline},
            )
        parsed = parse_baseline(
            text, DEFAULT_BASELINE_KEY, origin=f"{registry.baseline}:{BASELINE_RELATIVE_PATH}"
        )
        if parsed is None:
            raise BaselineMissingError(
                f"The builtin baseline file has no '{DEFAULT_BASELINE_KEY}' baseline.",
                context={"baseline": registry.baseline},
            )
        registry._baseline_cache["baseline"] = parsed
    return registry._baseline_cache["baseline"]


def builtin_port_names(registry: BuiltinRegistry) -> list[str]:
    ports_dir = registry.paths.builtin_ports_dir
    if not ports_dir.is_dir():
        return []
    return sorted(p.name for p in ports_dir.iterdir() if p.is_dir())


def get_builtin_versions(paths: RegistryPaths, port_name: str) -> list[tuple[SchemedVersion, str]]:
    """List every ``(version, git tree)`` the builtin version database knows for a port."""
    if not is_port_name(port_name):
        raise VersionNotFoundError(f"{port_name!r} is not a valid port name.")
    db_path = paths.builtin_root / version_db_relative_path(port_name)
    if not db_path.is_file():
        raise VersionNotFoundError(
            f"Port {port_name} has no builtin version database.",
            context={"file": str(db_path)},
        )
    db_entries = parse_version_db(
        db_path.read_text(encoding="utf-8"), VersionDbType.GIT, origin=str(db_path)
    )
    return [(SchemedVersion(e.scheme, e.version), e.git_tree) for e in db_entries]


def get_builtin_baseline(paths: RegistryPaths) -> dict[str, Version]:
    """Read the builtin baseline file from the checked-out tree."""
    baseline_path = paths.builtin_root / BASELINE_RELATIVE_PATH
    if not baseline_path.is_file():
        raise BaselineMissingError(
            "The builtin tree has no baseline file.", context={"file": str(baseline_path)}
        )
    parsed = parse_baseline(
        baseline_path.read_text(encoding="utf-8"), DEFAULT_BASELINE_KEY, origin=str(baseline_path)
    )
    if parsed is None:
        raise BaselineMissingError(
            f"The builtin baseline file has no '{DEFAULT_BASELINE_KEY}' baseline.",
            context={"file": str(baseline_path)},
        )
    return parsed
