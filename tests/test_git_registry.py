"""Tests for the git registry backend, using a local repository as the remote."""

import json
import tempfile
from pathlib import Path

import pytest
from git import Repo

from portreg.errors import BaselineMissingError, GitTransportError
from portreg.paths import RegistryPaths, RegistrySession
from portreg.registry.builtin import make_builtin_registry
from portreg.registry.git_registry import make_git_registry
from portreg.registry.implementation import get_all_port_names, get_baseline_version, get_port_entry
from portreg.registry.lockfile import LockFile
from portreg.registry.registry_set import Registry, RegistrySet
from portreg.versions import Version

from registry_builders import commit_all, commit_port_versions, write_baseline


class CountingResolver:
    def __init__(self, paths: RegistryPaths):
        self.paths = paths
        self.calls = 0

    def __call__(self, repo: str, reference: str) -> str:
        self.calls += 1
        return self.paths.fetch_from_remote_registry(repo, reference)


def _remote(tmpdir: str) -> tuple[Repo, dict[str, str], str]:
    """A registry repo publishing abseil 2023.01 and 2023.08."""
    root = Path(tmpdir) / "remote"
    root.mkdir()
    repo = Repo.init(root)
    trees = commit_port_versions(repo, "abseil", ["2023.01", "2023.08"])
    write_baseline(root, {"abseil": "2023.08"})
    head = commit_all(repo, "Publish abseil")
    return repo, trees, head


def _setup(tmpdir: str):
    remote, trees, head = _remote(tmpdir)
    paths = RegistryPaths(builtin_root=Path(tmpdir) / "vcpkg", cache_root=Path(tmpdir) / "cache")
    resolver = CountingResolver(paths)
    lockfile = LockFile(resolver)
    registry = make_git_registry(paths, lockfile, remote.working_tree_dir, baseline=head)
    return remote, trees, head, paths, resolver, registry


def test_port_entry_and_versions():
    with tempfile.TemporaryDirectory() as tmpdir:
        remote, _, head, _, resolver, registry = _setup(tmpdir)

        entry = get_port_entry(registry, "abseil")

        assert entry.get_port_versions() == (Version("2023.08"), Version("2023.01"))
        locked = registry.lockfile.find(remote.working_tree_dir, "HEAD")
        assert locked.commit_id == head
        assert registry.lockfile.modified
        assert resolver.calls == 1


def test_get_version_extracts_tree():
    with tempfile.TemporaryDirectory() as tmpdir:
        remote, trees, _, paths, _, registry = _setup(tmpdir)

        resolved = get_port_entry(registry, "abseil").get_version(Version("2023.01"))

        assert resolved.path == paths.git_trees_dir / trees["2023.01"]
        assert resolved.location == f"git+{remote.working_tree_dir}@{trees['2023.01']}"
        manifest = json.loads((resolved.path / "vcpkg.json").read_text())
        assert manifest["version"] == "2023.01"


def test_missing_port_is_none_without_refetching():
    with tempfile.TemporaryDirectory() as tmpdir:
        _, _, _, _, resolver, registry = _setup(tmpdir)

        assert get_port_entry(registry, "zlib") is None
        assert get_port_entry(registry, "fmt") is None
        # The reference was resolved in this session, so a miss is final
        assert resolver.calls == 1


def test_baseline_version():
    with tempfile.TemporaryDirectory() as tmpdir:
        _, _, _, _, _, registry = _setup(tmpdir)
        assert get_baseline_version(registry, "abseil") == Version("2023.08")
        with pytest.raises(BaselineMissingError):
            get_baseline_version(registry, "zlib")


def test_baseline_without_commit_configured():
    with tempfile.TemporaryDirectory() as tmpdir:
        remote, _, _, paths, resolver, _ = _setup(tmpdir)
        registry = make_git_registry(paths, LockFile(resolver), remote.working_tree_dir)
        with pytest.raises(BaselineMissingError):
            get_baseline_version(registry, "abseil")


def test_port_names():
    with tempfile.TemporaryDirectory() as tmpdir:
        _, _, _, _, _, registry = _setup(tmpdir)
        names: list[str] = []
        get_all_port_names(registry, names)
        assert names == ["abseil"]


def test_locked_commit_is_reused_across_sessions():
    with tempfile.TemporaryDirectory() as tmpdir:
        remote, _, head, paths, _, registry = _setup(tmpdir)
        get_port_entry(registry, "abseil")
        saved = registry.lockfile.to_dict()

        # Upstream moves on, but the lock keeps the old commit
        commit_port_versions(remote, "abseil", ["2024.01"])
        commit_all(remote, "Publish abseil 2024.01")

        resolver = CountingResolver(paths)
        next_session = make_git_registry(
            paths, LockFile.from_dict(saved, resolver), remote.working_tree_dir, baseline=head
        )
        entry = get_port_entry(next_session, "abseil")
        assert Version("2024.01") not in entry.get_port_versions()
        assert resolver.calls == 0


def test_port_added_upstream_triggers_refresh():
    with tempfile.TemporaryDirectory() as tmpdir:
        remote, _, head, paths, _, registry = _setup(tmpdir)
        get_port_entry(registry, "abseil")
        saved = registry.lockfile.to_dict()

        commit_port_versions(remote, "fmt", ["10.0.0"])
        new_head = commit_all(remote, "Publish fmt")

        resolver = CountingResolver(paths)
        lockfile = LockFile.from_dict(saved, resolver)
        next_session = make_git_registry(paths, lockfile, remote.working_tree_dir, baseline=head)

        entry = get_port_entry(next_session, "fmt")

        assert entry.get_port_versions() == (Version("10.0.0"),)
        assert resolver.calls == 1
        locked = lockfile.find(remote.working_tree_dir, "HEAD")
        assert locked.commit_id == new_head
        assert not locked.stale
        assert lockfile.modified


def test_stale_lock_entry_is_revalidated():
    with tempfile.TemporaryDirectory() as tmpdir:
        remote, _, head, paths, _, _ = _setup(tmpdir)
        resolver = CountingResolver(paths)
        lockfile = LockFile.from_dict(
            {remote.working_tree_dir: [{"reference": "HEAD", "commit-id": "f" * 40, "stale": True}]},
            resolver,
        )
        registry = make_git_registry(paths, lockfile, remote.working_tree_dir, baseline=head)

        assert get_port_entry(registry, "abseil") is not None
        assert lockfile.find(remote.working_tree_dir, "HEAD").commit_id == head
        assert resolver.calls == 1


def test_locked_commit_missing_from_cache_is_refetched():
    with tempfile.TemporaryDirectory() as tmpdir:
        remote, _, head, paths, _, _ = _setup(tmpdir)
        resolver = CountingResolver(paths)
        lockfile = LockFile.from_dict(
            {remote.working_tree_dir: [{"reference": "HEAD", "commit-id": head}]}, resolver
        )
        registry = make_git_registry(paths, lockfile, remote.working_tree_dir, baseline=head)

        assert get_port_entry(registry, "abseil") is not None
        assert resolver.calls == 1


def test_unreachable_remote():
    with tempfile.TemporaryDirectory() as tmpdir:
        paths = RegistryPaths(builtin_root=Path(tmpdir) / "vcpkg", cache_root=Path(tmpdir) / "cache")
        lockfile = LockFile(paths.fetch_from_remote_registry)
        registry = make_git_registry(
            paths, lockfile, str(Path(tmpdir) / "does-not-exist"), baseline="a" * 40
        )
        with pytest.raises(GitTransportError):
            get_port_entry(registry, "abseil")


def test_git_registry_beside_builtin_default():
    with tempfile.TemporaryDirectory() as tmpdir:
        remote, _, head, paths, _, _ = _setup(tmpdir)
        with RegistrySession(paths) as session:
            git_registry = make_git_registry(
                paths, session.lockfile, remote.working_tree_dir, baseline=head
            )
            builtin = make_builtin_registry(paths)
            registries = RegistrySet(builtin, [Registry(["abseil*"], git_registry)])

            assert registries.registry_for_port("abseil") is git_registry
            assert registries.registry_for_port("zlib") is builtin
            assert registries.baseline_for_port("abseil") == Version("2023.08")

        lock_data = json.loads(paths.lockfile_path.read_text())
        assert lock_data[remote.working_tree_dir][0]["commit-id"] == head


def test_session_close_stops_git_processes():
    with tempfile.TemporaryDirectory() as tmpdir:
        remote, _, head, paths, _, _ = _setup(tmpdir)
        with RegistrySession(paths) as session:
            registry = make_git_registry(paths, session.lockfile, remote.working_tree_dir, baseline=head)
            assert get_port_entry(registry, "abseil") is not None
            repo = paths.registry_repo()
            assert repo.git.cat_file_all is not None

        assert repo.git.cat_file_all is None
        assert repo.git.cat_file_header is None
        assert paths.registry_repo() is not repo
        paths.close()


def test_close_releases_builtin_repo():
    with tempfile.TemporaryDirectory() as tmpdir:
        remote, _, head, _, _, _ = _setup(tmpdir)
        paths = RegistryPaths(builtin_root=remote.working_tree_dir, cache_root=Path(tmpdir) / "cache")
        assert paths.show_from_builtin(head, "versions/baseline.json") is not None
        repo = paths.builtin_repo()
        paths.close()
        assert repo.git.cat_file_all is None
        assert paths.builtin_repo() is not repo
        paths.close()
        paths.close()
