"""Session paths and the per-session registry context.

``RegistryPaths`` knows where the builtin tree, the registry object cache,
the extracted git trees and the lock file live, and wraps the git
operations that the registry backends need. ``RegistrySession`` pairs the
paths with a lock file and writes the lock back when the session ends::

    with RegistrySession(RegistryPaths.from_env()) as session:
        registries = build_registry_set(config, session)
        entry = get_port_entry(registries.registry_for_port("zlib"), "zlib")
    # lock file written here if any reference was resolved
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from git import Repo

from portreg.registry.lockfile import LockFile
from portreg.utils import git_ops

ROOT_ENV = "PORTREG_ROOT"
CACHE_ENV = "PORTREG_CACHE"
LOCKFILE_NAME = "vcpkg-lock.json"


@dataclass
class RegistryPaths:
    """Filesystem layout for one session."""

    builtin_root: Path
    cache_root: Path
    lockfile_path: Path | None = None

    _builtin_repo: Repo | None = field(default=None, init=False, repr=False, compare=False)
    _registry_repo: Repo | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.builtin_root = Path(self.builtin_root)
        self.cache_root = Path(self.cache_root)
        if self.lockfile_path is None:
            self.lockfile_path = self.cache_root / LOCKFILE_NAME
        else:
            self.lockfile_path = Path(self.lockfile_path)

    @classmethod
    def from_env(
        cls,
        root: str | Path | None = None,
        cache: str | Path | None = None,
        lockfile: str | Path | None = None,
    ) -> RegistryPaths:
        """Build paths from arguments, falling back to environment variables.

        ``PORTREG_ROOT`` names the builtin tree (default: current directory);
        ``PORTREG_CACHE`` names the cache (default: ``~/.cache/portreg``).
        """
        root = root or os.environ.get(ROOT_ENV) or Path.cwd()
        cache = cache or os.environ.get(CACHE_ENV) or Path.home() / ".cache" / "portreg"
        return cls(builtin_root=Path(root), cache_root=Path(cache), lockfile_path=lockfile)

    @property
    def builtin_ports_dir(self) -> Path:
        return self.builtin_root / "ports"

    @property
    def builtin_versions_dir(self) -> Path:
        return self.builtin_root / "versions"

    @property
    def registry_git_dir(self) -> Path:
        return self.cache_root / "registries" / "git"

    @property
    def git_trees_dir(self) -> Path:
        return self.cache_root / "registries" / "git-trees"

    # -- git access ---------------------------------------------------------

    def builtin_repo(self) -> Repo:
        if self._builtin_repo is None:
            self._builtin_repo = git_ops.open_repo(self.builtin_root)
        return self._builtin_repo

    def registry_repo(self) -> Repo:
        if self._registry_repo is None:
            self._registry_repo = git_ops.ensure_cache_repo(self.registry_git_dir)
        return self._registry_repo

    def fetch_from_remote_registry(self, repo_url: str, reference: str) -> str:
        return git_ops.fetch_reference(self.registry_repo(), repo_url, reference)

    def show_from_remote_registry(self, commit: str, relative_path: str) -> str | None:
        return git_ops.read_file_at(self.registry_repo(), commit, relative_path)

    def list_remote_registry_tree(self, commit: str, relative_path: str) -> list[tuple[str, str]]:
        return git_ops.list_tree(self.registry_repo(), commit, relative_path)

    def has_registry_commit(self, commit: str) -> bool:
        return git_ops.has_object(self.registry_repo(), f"{commit}^{{commit}}")

    def extract_tree_from_remote_registry(self, tree_sha: str) -> Path:
        return git_ops.extract_tree(self.registry_repo(), tree_sha, self.git_trees_dir)

    def show_from_builtin(self, commit: str, relative_path: str) -> str | None:
        return git_ops.read_file_at(self.builtin_repo(), commit, relative_path)

    def extract_builtin_tree(self, tree_sha: str) -> Path:
        return git_ops.extract_tree(self.builtin_repo(), tree_sha, self.git_trees_dir)

    def close(self) -> None:
        """Close any repository opened by this session, stopping its git helper processes."""
        for repo in (self._builtin_repo, self._registry_repo):
            if repo is not None:
                repo.close()
        self._builtin_repo = None
        self._registry_repo = None


class RegistrySession:
    """A lock file bound to a set of paths for the lifetime of one resolution run."""

    def __init__(self, paths: RegistryPaths, lockfile: LockFile | None = None):
        self.paths = paths
        if lockfile is None:
            lockfile = LockFile.load(paths.lockfile_path, resolver=paths.fetch_from_remote_registry)
        self.lockfile = lockfile

    def __enter__(self) -> RegistrySession:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> bool:
        """Persist the lock file if this session changed it, then release the repositories."""
        try:
            return self.lockfile.save_if_modified(self.paths.lockfile_path)
        finally:
            self.paths.close()
