"""Filesystem registry: a local directory laid out like a git registry.

Version database records point at port directories with ``$/``-relative
paths instead of git trees, so nothing has to be extracted.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from portreg.errors import BaselineMissingError
from portreg.registry.entries import FilesystemEntry
from portreg.registry.models import VersionDbType
from portreg.registry.versiondb import (
    BASELINE_RELATIVE_PATH,
    DEFAULT_BASELINE_KEY,
    parse_baseline,
    parse_version_db,
    version_db_relative_path,
)
from portreg.versions import Version


@dataclass(frozen=True)
class FilesystemRegistry:
    kind: ClassVar[str] = "filesystem"

    root: Path
    baseline: str = ""

    @property
    def baseline_key(self) -> str:
        return self.baseline or DEFAULT_BASELINE_KEY


def make_filesystem_registry(root: str | Path, baseline: str = "") -> FilesystemRegistry:
    return FilesystemRegistry(root=Path(root).absolute(), baseline=baseline)


def filesystem_port_entry(registry: FilesystemRegistry, port_name: str) -> FilesystemEntry | None:
    db_path = registry.root / version_db_relative_path(port_name)
    if not db_path.is_file():
        return None
    db_entries = parse_version_db(
        db_path.read_text(encoding="utf-8"),
        VersionDbType.FILESYSTEM,
        registry.root,
        origin=str(db_path),
    )
    return FilesystemEntry(port_name, db_entries)


def filesystem_baseline_version(registry: FilesystemRegistry, port_name: str) -> Version:
    baseline_path = registry.root / BASELINE_RELATIVE_PATH
    if not baseline_path.is_file():
        raise BaselineMissingError(
            f"The filesystem registry at {registry.root} has no baseline file.",
            context={"file": str(baseline_path)},
        )
    baseline = parse_baseline(
        baseline_path.read_text(encoding="utf-8"), registry.baseline_key, origin=str(baseline_path)
    )
    if baseline is None:
        raise BaselineMissingError(
            f"The filesystem registry at {registry.root} has no baseline named "
            f"'{registry.baseline_key}'.",
            context={"file": str(baseline_path)},
        )
    if port_name not in baseline:
        raise BaselineMissingError(
            f"Port {port_name} has no entry in baseline '{registry.baseline_key}'.",
            context={"file": str(baseline_path)},
        )
    return baseline[port_name]


def filesystem_port_names(registry: FilesystemRegistry) -> list[str]:
    versions_dir = registry.root / "versions"
    if not versions_dir.is_dir():
        return []
    return sorted(p.stem for p in versions_dir.glob("*-/*.json"))
