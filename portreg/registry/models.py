"""Registry data models: version database records and resolved locations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from portreg.versions import Version, VersionScheme

BUILTIN_REGISTRY_GIT_URL = "https://github.com/microsoft/vcpkg"


class VersionDbType(Enum):
    """Physical encoding of a version database.

    ``GIT`` records carry a ``git-tree`` object id; ``FILESYSTEM`` records
    carry a ``path`` under the registry root.
    """

    GIT = "git"
    FILESYSTEM = "filesystem"


@dataclass(frozen=True)
class VersionDbEntry:
    """One known version of a port and where its recipe lives.

    Exactly one of ``git_tree`` and ``path`` is set.
    """

    version: Version
    scheme: VersionScheme = VersionScheme.STRING
    git_tree: str = ""
    path: Path | None = None


@dataclass(frozen=True)
class PathAndLocation:
    """A materialized port recipe directory and where it came from.

    ``location`` follows the SPDX PackageDownloadLocation field; an empty
    string means NOASSERTION.
    """

    path: Path
    location: str = ""

    @property
    def spdx_location(self) -> str:
        return self.location or "NOASSERTION"
