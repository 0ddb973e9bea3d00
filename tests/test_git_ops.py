"""Tests for reading registry files out of git objects."""

import tempfile
from pathlib import Path

import pytest
from git import Repo

from portreg.errors import GitTransportError, RegistryError, VersionDbError
from portreg.utils.git_ops import read_file_at

from registry_builders import commit_all, write_baseline


def _repo(tmpdir: str) -> tuple[Repo, str]:
    root = Path(tmpdir) / "registry"
    root.mkdir()
    repo = Repo.init(root)
    write_baseline(root, {"zlib": "1.2.13"})
    (root / "versions" / "z-").mkdir()
    (root / "versions" / "z-" / "zlib.json").write_bytes(b'{"versions": [\xff\xfe]}')
    return repo, commit_all(repo, "Add registry files")


def test_read_file_at():
    with tempfile.TemporaryDirectory() as tmpdir:
        repo, commit = _repo(tmpdir)
        assert '"zlib"' in read_file_at(repo, commit, "versions/baseline.json")
        assert read_file_at(repo, commit, "versions/f-/fmt.json") is None
        assert read_file_at(repo, commit, "versions") is None
        repo.close()


def test_read_file_at_rejects_invalid_utf8():
    with tempfile.TemporaryDirectory() as tmpdir:
        repo, commit = _repo(tmpdir)
        with pytest.raises(VersionDbError) as exc_info:
            read_file_at(repo, commit, "versions/z-/zlib.json")
        assert isinstance(exc_info.value, RegistryError)
        assert exc_info.value.context["path"] == "versions/z-/zlib.json"
        assert isinstance(exc_info.value.__cause__, UnicodeDecodeError)
        repo.close()


def test_read_file_at_unknown_commit():
    with tempfile.TemporaryDirectory() as tmpdir:
        repo, _ = _repo(tmpdir)
        with pytest.raises(GitTransportError):
            read_file_at(repo, "0" * 40, "versions/baseline.json")
        repo.close()
