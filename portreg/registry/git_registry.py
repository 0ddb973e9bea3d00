"""Git registry: ports published in a remote git repository.

The registry is identified by a repository URL, a reference (branch, tag or
commit) and a baseline. The reference is resolved through the lock file and
decides which version databases are visible; the baseline is a commit whose
``versions/baseline.json`` supplies each port's default version.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import ClassVar

from portreg.errors import BaselineMissingError
from portreg.paths import RegistryPaths
from portreg.registry.entries import GitRegistryEntry
from portreg.registry.lockfile import LockEntry, LockFile
from portreg.registry.models import VersionDbType
from portreg.registry.versiondb import (
    BASELINE_RELATIVE_PATH,
    DEFAULT_BASELINE_KEY,
    parse_baseline,
    parse_version_db,
    version_db_relative_path,
)
from portreg.versions import Version

logger = logging.getLogger(__name__)

DEFAULT_REFERENCE = "HEAD"


@dataclass(frozen=True)
class GitRegistry:
    kind: ClassVar[str] = "git"

    paths: RegistryPaths = field(compare=False)
    lockfile: LockFile = field(compare=False, repr=False)
    repo: str
    reference: str
    baseline: str
    _baseline_cache: dict = field(default_factory=dict, init=False, repr=False, compare=False)


def make_git_registry(
    paths: RegistryPaths,
    lockfile: LockFile,
    repo: str,
    reference: str = DEFAULT_REFERENCE,
    baseline: str = "",
) -> GitRegistry:
    return GitRegistry(
        paths=paths,
        lockfile=lockfile,
        repo=repo,
        reference=reference or DEFAULT_REFERENCE,
        baseline=baseline,
    )


def _locked_entry(registry: GitRegistry) -> LockEntry:
    """Lock entry for the registry reference, with its commit present locally."""
    entry = registry.lockfile.get_or_fetch(registry.repo, registry.reference)
    if not registry.paths.has_registry_commit(entry.commit_id):
        # Lock file survived but the object cache did not
        logger.info(f"Commit {entry.commit_id[:12]} of {registry.repo} is not cached; refetching")
        entry.mark_stale()
        entry.ensure_up_to_date()
    return entry


def git_port_entry(registry: GitRegistry, port_name: str) -> GitRegistryEntry | None:
    relative_path = version_db_relative_path(port_name)
    entry = _locked_entry(registry)
    text = registry.paths.show_from_remote_registry(entry.commit_id, relative_path)

    if text is None and not registry.lockfile.verified_this_session(registry.repo, registry.reference):
        # The port may have been added upstream after the lock was written
        entry.mark_stale()
        entry.ensure_up_to_date()
        text = registry.paths.show_from_remote_registry(entry.commit_id, relative_path)

    if text is None:
        return None

    db_entries = parse_version_db(
        text,
        VersionDbType.GIT,
        origin=f"{registry.repo}@{entry.commit_id[:12]}:{relative_path}",
    )
    return GitRegistryEntry(port_name, db_entries, registry.paths, registry.repo)


def git_baseline_version(registry: GitRegistry, port_name: str) -> Version:
    baseline = _git_baseline(registry)
    if port_name not in baseline:
        raise BaselineMissingError(
            f"Port {port_name} has no entry in the baseline of {registry.repo}.",
            context={"repository": registry.repo, "baseline": registry.baseline},
        )
    return baseline[port_name]


def _git_baseline(registry: GitRegistry) -> dict[str, Version]:
    if "baseline" in registry._baseline_cache:
        return registry._baseline_cache["baseline"]

    if not registry.baseline:
        raise BaselineMissingError(
            f"The git registry {registry.repo} has no baseline configured.",
            hint="Set 'baseline' to a commit of the registry repository.",
        )

    paths = registry.paths
    if not paths.has_registry_commit(registry.baseline):
        # Fetching the tracked reference usually brings the baseline commit along
        _locked_entry(registry)
    if not paths.has_registry_commit(registry.baseline):
        paths.fetch_from_remote_registry(registry.repo, registry.baseline)

    text = paths.show_from_remote_registry(registry.baseline, BASELINE_RELATIVE_PATH)
    if text is None:
        raise BaselineMissingError(
            f"The git registry {registry.repo} has no {BASELINE_RELATIVE_PATH} at its baseline.",
            context={"repository": registry.repo, "baseline": registry.baseline},
        )
    parsed = parse_baseline(
        text,
        DEFAULT_BASELINE_KEY,
        origin=f"{registry.repo}@{registry.baseline[:12]}:{BASELINE_RELATIVE_PATH}",
    )
    if parsed is None:
        raise BaselineMissingError(
            f"The baseline file of {registry.repo} has no '{DEFAULT_BASELINE_KEY}' baseline.",
            context={"repository": registry.repo, "baseline": registry.baseline},
        )
    registry._baseline_cache["baseline"] = parsed
    return parsed


def git_port_names(registry: GitRegistry) -> list[str]:
    """Ports that have a version database at the locked commit."""
    entry = _locked_entry(registry)
    names: list[str] = []
    for dir_name, kind in registry.paths.list_remote_registry_tree(entry.commit_id, "versions"):
        if kind != "tree" or not dir_name.endswith("-"):
            continue
        for file_name, file_kind in registry.paths.list_remote_registry_tree(
            entry.commit_id, f"versions/{dir_name}"
        ):
            if file_kind == "blob" and file_name.endswith(".json"):
                names.append(file_name[: -len(".json")])
    return names
