"""Tests for the portreg CLI."""

import json
import tempfile
from pathlib import Path

from click.testing import CliRunner

from portreg.cli import main

from registry_builders import make_filesystem_tree, write_json


def _config(tmpdir: str, default_registry=None) -> Path:
    make_filesystem_tree(Path(tmpdir) / "registry")
    return write_json(
        Path(tmpdir) / "vcpkg-configuration.json",
        {
            "default-registry": default_registry,
            "registries": [
                {"kind": "filesystem", "path": "registry", "packages": ["zlib", "fmt"]}
            ],
        },
    )


def _invoke(tmpdir: str, *args: str):
    runner = CliRunner()
    config = _config(tmpdir)
    return runner.invoke(
        main, ["--config", str(config), "--cache", str(Path(tmpdir) / "cache"), *args]
    )


def test_which():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(tmpdir, "which", "zlib")
        assert result.exit_code == 0, result.output
        assert "zlib -> filesystem" in result.output


def test_which_unclaimed_port():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(tmpdir, "which", "curl")
        assert result.exit_code == 1
        assert "No registry is configured for curl" in result.output


def test_versions():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(tmpdir, "versions", "zlib")
        assert result.exit_code == 0, result.output
        assert result.output.split() == ["1.2.13", "1.2.12#1"]


def test_resolve():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(tmpdir, "resolve", "zlib", "1.2.12#1")
        assert result.exit_code == 0, result.output
        port_dir = Path(tmpdir).absolute() / "registry" / "ports" / "zlib" / "1.2.12-1"
        assert f"path: {port_dir}" in result.output
        assert "location: NOASSERTION" in result.output


def test_resolve_unknown_version():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(tmpdir, "resolve", "zlib", "0.1")
        assert result.exit_code == 1
        assert "error:" in result.output


def test_resolve_bad_version_argument():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(tmpdir, "resolve", "zlib", "1.0#beta")
        assert result.exit_code == 2


def test_baseline():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(tmpdir, "baseline", "fmt")
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "10.0.0"


def test_ports():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(tmpdir, "ports")
        assert result.exit_code == 0, result.output
        assert result.output.split() == ["fmt", "zlib"]


def test_lock_empty():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(tmpdir, "lock")
        assert result.exit_code == 0, result.output
        assert "The lock file is empty." in result.output


def test_lock_lists_entries():
    with tempfile.TemporaryDirectory() as tmpdir:
        lock_path = Path(tmpdir) / "cache" / "vcpkg-lock.json"
        write_json(
            lock_path,
            {"https://example.com/ports.git": [{"reference": "main", "commit-id": "ab" * 20}]},
        )
        result = _invoke(tmpdir, "lock")
        assert result.exit_code == 0, result.output
        assert "abababababab" in result.output
        # Nothing changed, so the file is left as written
        assert "stale" not in json.loads(lock_path.read_text())["https://example.com/ports.git"][0]


def test_invalid_config():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = write_json(Path(tmpdir) / "bad.json", {"registries": [{"kind": "svn"}]})
        result = CliRunner().invoke(
            main, ["--config", str(config), "--cache", str(Path(tmpdir) / "cache"), "which", "zlib"]
        )
        assert result.exit_code == 1
        assert "'kind' must be one of" in result.output


def test_invalid_port_name_argument():
    with tempfile.TemporaryDirectory() as tmpdir:
        for args in (("versions", ""), ("which", "Zlib"), ("resolve", "z/lib", "1.0")):
            result = _invoke(tmpdir, *args)
            assert result.exit_code == 2, args
            assert "is not a port name" in result.output
