"""Registry configuration: which registries exist and which ports they claim.

The configuration file is JSON or YAML::

    default-registry:
      kind: builtin
      baseline: 2023-01-01
    registries:
      - kind: git
        repository: https://example.com/ports.git
        baseline: 0123456789abcdef0123456789abcdef01234567
        packages: [abseil*, "my-*"]
      - kind: filesystem
        path: ./local-registry
        packages: [zlib]

Fields starting with ``$`` are comments and are ignored. A missing
``default-registry`` means the builtin registry without a baseline; an
explicit ``null`` means there is no default registry.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from portreg.errors import ConfigurationError
from portreg.paths import RegistrySession
from portreg.registry.builtin import make_builtin_registry
from portreg.registry.filesystem import make_filesystem_registry
from portreg.registry.git_registry import DEFAULT_REFERENCE, make_git_registry
from portreg.registry.implementation import RegistryImplementation
from portreg.registry.patterns import is_package_pattern
from portreg.registry.registry_set import Registry, RegistrySet
from portreg.utils.git_ops import is_git_commit_sha

KINDS = ("builtin", "git", "filesystem")

_KIND_FIELDS = {
    "builtin": ("kind", "baseline"),
    "git": ("kind", "repository", "reference", "baseline"),
    "filesystem": ("kind", "path", "baseline"),
}


@dataclass
class RegistryDescriptor:
    """How to construct one registry backend."""

    kind: str
    baseline: str = ""
    repository: str = ""
    reference: str = ""
    path: Path | None = None


@dataclass
class RegistryConfigEntry:
    descriptor: RegistryDescriptor
    packages: list[str] = field(default_factory=list)


@dataclass
class RegistryConfig:
    default_registry: RegistryDescriptor | None = field(
        default_factory=lambda: RegistryDescriptor(kind="builtin")
    )
    registries: list[RegistryConfigEntry] = field(default_factory=list)


def load_registry_config(path: str | Path) -> RegistryConfig:
    """Load a registry configuration from a YAML or JSON file."""
    config_path = Path(path)
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigurationError(f"Cannot read registry configuration {config_path}.", hint=str(exc)) from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"Failed to parse registry configuration {config_path}.", hint=str(exc)
        ) from exc
    return parse_registry_config(data, base_dir=config_path.parent, origin=str(config_path))


def parse_registry_config(
    data: Any, base_dir: str | Path = ".", origin: str = "registry configuration"
) -> RegistryConfig:
    """Validate an already-parsed configuration document.

    Relative filesystem registry paths are resolved against ``base_dir``.
    """
    if data is None:
        return RegistryConfig()
    if not isinstance(data, dict):
        raise ConfigurationError(f"Invalid {origin}: expected an object.")

    issues: list[str] = []
    base_dir = Path(base_dir)
    config = RegistryConfig()

    for key in data:
        if key not in ("default-registry", "registries") and not str(key).startswith("$"):
            issues.append(f"/: unexpected field '{key}' (expected default-registry, registries)")

    if "default-registry" in data:
        raw_default = data["default-registry"]
        if raw_default is None:
            config.default_registry = None
        else:
            config.default_registry = _parse_descriptor(
                raw_default, "default-registry", base_dir, issues, is_default=True
            )

    raw_registries = data.get("registries", [])
    if not isinstance(raw_registries, list):
        issues.append("registries: expected an array")
        raw_registries = []
    for i, raw in enumerate(raw_registries):
        where = f"registries[{i}]"
        descriptor = _parse_descriptor(raw, where, base_dir, issues, is_default=False)
        packages = _parse_packages(raw, where, issues)
        if descriptor is not None and packages is not None:
            config.registries.append(RegistryConfigEntry(descriptor=descriptor, packages=packages))

    if issues:
        raise ConfigurationError(f"Invalid {origin}.", issues=issues)
    return config


def _parse_descriptor(
    raw: Any, where: str, base_dir: Path, issues: list[str], *, is_default: bool
) -> RegistryDescriptor | None:
    if not isinstance(raw, dict):
        issues.append(f"{where}: expected an object")
        return None

    kind = raw.get("kind")
    if kind not in KINDS:
        issues.append(f"{where}: 'kind' must be one of {', '.join(KINDS)} (got {kind!r})")
        return None

    allowed = _KIND_FIELDS[kind] if is_default else (*_KIND_FIELDS[kind], "packages")
    for key in raw:
        if key not in allowed and not str(key).startswith("$"):
            issues.append(
                f"{where}: unexpected field '{key}' for a {kind} registry "
                f"(expected {', '.join(allowed)})"
            )

    string_fields = {}
    for key in ("baseline", "repository", "reference", "path"):
        value = raw.get(key, "")
        if isinstance(value, datetime.date):
            # YAML reads an unquoted 2023-01-01 as a date
            value = value.isoformat()
        if not isinstance(value, str):
            issues.append(f"{where}: '{key}' must be a string")
            value = ""
        string_fields[key] = value

    baseline = string_fields["baseline"]
    descriptor = RegistryDescriptor(kind=kind, baseline=baseline)

    if kind == "builtin":
        if not is_default and not baseline:
            issues.append(f"{where}: a builtin registry in 'registries' requires a 'baseline'")
    elif kind == "git":
        descriptor.repository = string_fields["repository"]
        descriptor.reference = string_fields["reference"] or DEFAULT_REFERENCE
        if not descriptor.repository:
            issues.append(f"{where}: a git registry requires a 'repository'")
        if not is_git_commit_sha(baseline):
            issues.append(
                f"{where}: a git registry requires a 'baseline' that is a full commit sha "
                f"(got {baseline!r})"
            )
    elif kind == "filesystem":
        if not string_fields["path"]:
            issues.append(f"{where}: a filesystem registry requires a 'path'")
        else:
            descriptor.path = (base_dir / string_fields["path"]).absolute()

    return descriptor


def _parse_packages(raw: Any, where: str, issues: list[str]) -> list[str] | None:
    if not isinstance(raw, dict):
        return None
    packages = raw.get("packages")
    if not isinstance(packages, list) or not packages:
        issues.append(f"{where}: 'packages' must be a non-empty array of package patterns")
        return None
    ok = True
    for j, pattern in enumerate(packages):
        if not isinstance(pattern, str) or not is_package_pattern(pattern):
            issues.append(
                f"{where}.packages[{j}]: {pattern!r} is not a port name or a prefix pattern "
                "(lowercase letters, digits and '-', optionally ending in '*')"
            )
            ok = False
    return list(packages) if ok else None


def make_registry(descriptor: RegistryDescriptor, session: RegistrySession) -> RegistryImplementation:
    match descriptor.kind:
        case "builtin":
            return make_builtin_registry(session.paths, descriptor.baseline)
        case "git":
            return make_git_registry(
                session.paths,
                session.lockfile,
                descriptor.repository,
                descriptor.reference,
                descriptor.baseline,
            )
        case "filesystem":
            return make_filesystem_registry(descriptor.path, descriptor.baseline)
    raise ConfigurationError(f"Unknown registry kind '{descriptor.kind}'.")


def build_registry_set(config: RegistryConfig, session: RegistrySession) -> RegistrySet:
    """Construct the session's registry set from a validated configuration."""
    default_registry = None
    if config.default_registry is not None:
        default_registry = make_registry(config.default_registry, session)
    registries = [
        Registry(entry.packages, make_registry(entry.descriptor, session))
        for entry in config.registries
    ]
    return RegistrySet(default_registry, registries)
