"""Per-port registry entries.

An entry is a snapshot of the versions one registry offers for one port. It
is created for a single lookup and can turn any listed version into a
``PathAndLocation``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from portreg.errors import RegistryError, VersionNotFoundError
from portreg.registry.models import BUILTIN_REGISTRY_GIT_URL, PathAndLocation, VersionDbEntry
from portreg.versions import Version

if TYPE_CHECKING:
    from portreg.paths import RegistryPaths

logger = logging.getLogger(__name__)


class RegistryEntry(ABC):
    """Versions of one port as seen by one registry."""

    def __init__(self, port_name: str, versions: Sequence[Version]):
        self.port_name = port_name
        self._versions = tuple(versions)

    def get_port_versions(self) -> tuple[Version, ...]:
        """Versions in database order (not sorted)."""
        return self._versions

    @abstractmethod
    def get_version(self, version: Version) -> PathAndLocation:
        """Materialize ``version``; raises VersionNotFoundError if it is not listed."""

    def _not_found(self, version: Version) -> VersionNotFoundError:
        known = ", ".join(str(v) for v in self._versions) or "(none)"
        return VersionNotFoundError(
            f"Version {version} of port {self.port_name} was not found in the registry.",
            hint=f"Known versions: {known}",
            context={"port": self.port_name, "version": str(version)},
        )


class PortTreeEntry(RegistryEntry):
    """The single version currently checked out in the builtin ports tree."""

    def __init__(self, port_name: str, version: Version, port_dir: Path):
        super().__init__(port_name, [version])
        self.port_dir = port_dir

    def get_version(self, version: Version) -> PathAndLocation:
        if version != self._versions[0]:
            raise self._not_found(version)
        return PathAndLocation(path=self.port_dir)


class _VersionDbEntryBase(RegistryEntry):
    def __init__(self, port_name: str, db_entries: Sequence[VersionDbEntry]):
        super().__init__(port_name, [e.version for e in db_entries])
        self._db_entries = tuple(db_entries)

    def get_version(self, version: Version) -> PathAndLocation:
        for db_entry in self._db_entries:
            if db_entry.version == version:
                logger.debug(f"Materializing {self.port_name} {version}")
                return self._materialize(db_entry)
        raise self._not_found(version)

    @abstractmethod
    def _materialize(self, db_entry: VersionDbEntry) -> PathAndLocation:
        ...


class BuiltinGitEntry(_VersionDbEntryBase):
    """Builtin port versions extracted from the builtin tree's own object store."""

    def __init__(self, port_name: str, db_entries: Sequence[VersionDbEntry], paths: RegistryPaths):
        super().__init__(port_name, db_entries)
        self._paths = paths

    def _materialize(self, db_entry: VersionDbEntry) -> PathAndLocation:
        path = self._paths.extract_builtin_tree(db_entry.git_tree)
        return PathAndLocation(path=path, location=f"git+{BUILTIN_REGISTRY_GIT_URL}@{db_entry.git_tree}")


class GitRegistryEntry(_VersionDbEntryBase):
    """Port versions of a remote git registry, extracted from the fetched objects."""

    def __init__(
        self,
        port_name: str,
        db_entries: Sequence[VersionDbEntry],
        paths: RegistryPaths,
        repo_url: str,
    ):
        super().__init__(port_name, db_entries)
        self._paths = paths
        self.repo_url = repo_url

    def _materialize(self, db_entry: VersionDbEntry) -> PathAndLocation:
        path = self._paths.extract_tree_from_remote_registry(db_entry.git_tree)
        return PathAndLocation(path=path, location=f"git+{self.repo_url}@{db_entry.git_tree}")


class FilesystemEntry(_VersionDbEntryBase):
    """Port versions stored as plain directories under a filesystem registry."""

    def _materialize(self, db_entry: VersionDbEntry) -> PathAndLocation:
        if not db_entry.path.is_dir():
            raise RegistryError(
                f"Port directory for {self.port_name} {db_entry.version} does not exist.",
                context={"path": str(db_entry.path)},
            )
        return PathAndLocation(path=db_entry.path)
