"""Readers for the registry file formats.

Three documents are understood here:

- the per-port version database, ``versions/<c>-/<port>.json``, whose
  records carry either a ``git-tree`` or a ``path`` depending on the
  registry kind;
- the baseline file, ``versions/baseline.json``;
- the port manifest, ``ports/<port>/vcpkg.json`` (or a legacy ``CONTROL``).

Validation collects every issue in a document before raising, so a single
error lists all the problems in the file.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from portreg.errors import VersionDbError
from portreg.registry.models import VersionDbEntry, VersionDbType
from portreg.registry.patterns import is_port_name
from portreg.versions import (
    PORT_VERSION_FIELD,
    VERSION_FIELDS,
    SchemedVersion,
    Version,
    VersionScheme,
    parse_version_fields,
)

GIT_TREE = "git-tree"
PATH = "path"
BASELINE = "baseline"
DEFAULT_BASELINE_KEY = "default"

BASELINE_RELATIVE_PATH = "versions/baseline.json"

_ENCODING_FIELD = {VersionDbType.GIT: GIT_TREE, VersionDbType.FILESYSTEM: PATH}


def version_db_relative_path(port_name: str) -> str:
    """Location of a port's version database relative to the registry root."""
    if not is_port_name(port_name):
        raise ValueError(f"Invalid port name: {port_name!r}")
    return f"versions/{port_name[0]}-/{port_name}.json"


def valid_fields(db_type: VersionDbType) -> tuple[str, ...]:
    return (*VERSION_FIELDS, PORT_VERSION_FIELD, _ENCODING_FIELD[db_type])


def parse_version_db(
    source: str | list | dict,
    db_type: VersionDbType,
    registry_root: str | Path | None = None,
    *,
    origin: str = "",
) -> list[VersionDbEntry]:
    """Parse a version database into entries, preserving record order.

    Args:
        source: JSON text, the ``{"versions": [...]}`` document, or the bare array.
        db_type: Which encoding the records must use.
        registry_root: Root that ``$/``-relative paths resolve against. Required
            for ``FILESYSTEM`` databases.
        origin: File name used in error messages.

    Raises:
        VersionDbError: If the document or any record is invalid.
    """
    if db_type is VersionDbType.FILESYSTEM and registry_root is None:
        raise ValueError("A filesystem version database needs a registry root")

    data = _load_json(source, origin)
    issues: list[str] = []

    if isinstance(data, dict):
        for key in data:
            if key != "versions":
                issues.append(f"/: unexpected field '{key}' (expected 'versions')")
        if "versions" not in data:
            issues.append("/: missing required field 'versions'")
            raise _db_error(origin, issues)
        data = data["versions"]

    if not isinstance(data, list):
        issues.append(f"versions: expected an array, got {type(data).__name__}")
        raise _db_error(origin, issues)

    entries: list[VersionDbEntry] = []
    for i, record in enumerate(data):
        entry = _parse_record(record, db_type, registry_root, f"versions[{i}]", issues)
        if entry is not None:
            entries.append(entry)

    if issues:
        raise _db_error(origin, issues)
    return entries


def _parse_record(
    record: Any,
    db_type: VersionDbType,
    registry_root: str | Path | None,
    where: str,
    issues: list[str],
) -> VersionDbEntry | None:
    if not isinstance(record, dict):
        issues.append(f"{where}: expected an object, got {type(record).__name__}")
        return None

    own_field = _ENCODING_FIELD[db_type]
    other_field = GIT_TREE if own_field == PATH else PATH
    allowed = valid_fields(db_type)
    ok = True

    for key in record:
        if key == other_field:
            issues.append(
                f"{where}: field '{key}' is not allowed in a {db_type.value} registry "
                f"version database (expected '{own_field}')"
            )
            ok = False
        elif key not in allowed:
            issues.append(
                f"{where}: unexpected field '{key}' (expected {', '.join(allowed)})"
            )
            ok = False

    schemed, version_issues = parse_version_fields(record, where)
    issues.extend(version_issues)

    if own_field not in record:
        issues.append(f"{where}: missing required field '{own_field}'")
        return None
    value = record[own_field]
    if not isinstance(value, str) or not value:
        issues.append(f"{where}: '{own_field}' must be a non-empty string")
        return None

    if schemed is None or not ok:
        return None

    if db_type is VersionDbType.GIT:
        return VersionDbEntry(version=schemed.version, scheme=schemed.scheme, git_tree=value)

    resolved = _resolve_registry_path(value, Path(registry_root), where, issues)
    if resolved is None:
        return None
    return VersionDbEntry(version=schemed.version, scheme=schemed.scheme, path=resolved)


def _resolve_registry_path(
    value: str, registry_root: Path, where: str, issues: list[str]
) -> Path | None:
    # Registry paths look like "$/ports/zlib/1.2.13"
    if not value.startswith("$/"):
        issues.append(f"{where}: '{PATH}' must start with '$/' (got '{value}')")
        return None
    if "\\" in value:
        issues.append(f"{where}: '{PATH}' must use forward slashes (got '{value}')")
        return None
    segments = value[2:].split("/")
    if any(segment in ("", ".", "..") for segment in segments):
        issues.append(
            f"{where}: '{PATH}' must not contain empty, '.' or '..' segments (got '{value}')"
        )
        return None
    return registry_root.absolute().joinpath(*segments)


def parse_baseline(
    source: str | dict,
    baseline_key: str = DEFAULT_BASELINE_KEY,
    *,
    origin: str = "",
) -> dict[str, Version] | None:
    """Read one named baseline out of a baseline file.

    Returns None when the file has no baseline under ``baseline_key``.
    """
    data = _load_json(source, origin)
    if not isinstance(data, dict):
        raise _db_error(origin, [f"/: expected an object, got {type(data).__name__}"], "baseline")

    ports = data.get(baseline_key)
    if ports is None:
        return None
    if not isinstance(ports, dict):
        raise _db_error(origin, [f"{baseline_key}: expected an object"], "baseline")

    issues: list[str] = []
    baseline: dict[str, Version] = {}
    for name, record in ports.items():
        where = f"{baseline_key}.{name}"
        if not isinstance(record, dict):
            issues.append(f"{where}: expected an object")
            continue
        for key in record:
            if key not in (BASELINE, PORT_VERSION_FIELD):
                issues.append(
                    f"{where}: unexpected field '{key}' (expected {BASELINE}, {PORT_VERSION_FIELD})"
                )
        text = record.get(BASELINE)
        port_version = record.get(PORT_VERSION_FIELD, 0)
        if not isinstance(text, str) or not text:
            issues.append(f"{where}: '{BASELINE}' must be a non-empty string")
            continue
        if isinstance(port_version, bool) or not isinstance(port_version, int) or port_version < 0:
            issues.append(f"{where}: '{PORT_VERSION_FIELD}' must be a non-negative integer")
            continue
        baseline[name] = Version(text, port_version)

    if issues:
        raise _db_error(origin, issues, "baseline")
    return baseline


def read_port_manifest(port_dir: str | Path) -> SchemedVersion | None:
    """Read the version declared by a port directory.

    Looks at ``vcpkg.json`` first, then a legacy ``CONTROL`` file. Returns
    None when the directory holds neither.
    """
    port_dir = Path(port_dir)
    manifest = port_dir / "vcpkg.json"
    if manifest.is_file():
        origin = str(manifest)
        data = _load_json(manifest.read_text(encoding="utf-8"), origin)
        if not isinstance(data, dict):
            raise _db_error(origin, ["/: expected an object"], "port manifest")
        schemed, issues = parse_version_fields(data, "/")
        if issues:
            raise _db_error(origin, issues, "port manifest")
        return schemed

    control = port_dir / "CONTROL"
    if control.is_file():
        return _parse_control(control)
    return None


def _parse_control(control: Path) -> SchemedVersion:
    fields: dict[str, str] = {}
    for line in control.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            # Only the source paragraph carries the version
            if fields:
                break
            continue
        key, sep, value = line.partition(":")
        if sep and not line[0].isspace():
            fields[key.strip()] = value.strip()

    text = fields.get("Version", "")
    if not text:
        raise _db_error(str(control), ["missing 'Version' field"], "port manifest")
    port_version = fields.get("Port-Version", "0")
    if not port_version.isdigit():
        raise _db_error(
            str(control), ["'Port-Version' must be a non-negative integer"], "port manifest"
        )
    return SchemedVersion(VersionScheme.STRING, Version(text, int(port_version)))


def _load_json(source: Any, origin: str) -> Any:
    if not isinstance(source, str):
        return source
    try:
        return json.loads(source)
    except json.JSONDecodeError as exc:
        raise VersionDbError(
            f"Invalid JSON in {origin or 'registry file'}.",
            hint=str(exc),
            context={"file": origin},
        ) from exc


def _db_error(origin: str, issues: list[str], what: str = "version database") -> VersionDbError:
    where = f" {origin}" if origin else ""
    return VersionDbError(f"Invalid {what}{where}.", issues=issues)
