"""Dispatch over the closed set of registry backends.

The backends are plain frozen dataclasses; every operation on "some
registry" goes through the functions here, which pick the per-kind
implementation with a ``match`` statement.
"""

from __future__ import annotations

import logging
from typing import Union

from portreg.errors import BaselineMissingError
from portreg.registry.builtin import (
    BuiltinRegistry,
    builtin_baseline_version,
    builtin_port_entry,
    builtin_port_names,
)
from portreg.registry.entries import RegistryEntry
from portreg.registry.filesystem import (
    FilesystemRegistry,
    filesystem_baseline_version,
    filesystem_port_entry,
    filesystem_port_names,
)
from portreg.registry.git_registry import (
    GitRegistry,
    git_baseline_version,
    git_port_entry,
    git_port_names,
)
from portreg.registry.patterns import is_port_name
from portreg.versions import Version

logger = logging.getLogger(__name__)

RegistryImplementation = Union[BuiltinRegistry, GitRegistry, FilesystemRegistry]


def registry_kind(registry: RegistryImplementation) -> str:
    match registry:
        case BuiltinRegistry() | GitRegistry() | FilesystemRegistry():
            return registry.kind
    raise TypeError(f"Not a registry implementation: {registry!r}")


def get_port_entry(registry: RegistryImplementation, port_name: str) -> RegistryEntry | None:
    """Versions of ``port_name`` in ``registry``, or None if the port is not there.

    A string that is not a valid port name is never there.
    """
    if not is_port_name(port_name):
        logger.debug(f"Not a port name: {port_name!r}")
        return None
    match registry:
        case BuiltinRegistry():
            return builtin_port_entry(registry, port_name)
        case GitRegistry():
            return git_port_entry(registry, port_name)
        case FilesystemRegistry():
            return filesystem_port_entry(registry, port_name)
    raise TypeError(f"Not a registry implementation: {registry!r}")


def get_all_port_names(registry: RegistryImplementation, port_names: list[str]) -> None:
    """Append every port name the registry knows to ``port_names``.

    Names may repeat; callers de-duplicate.
    """
    match registry:
        case BuiltinRegistry():
            port_names.extend(builtin_port_names(registry))
        case GitRegistry():
            port_names.extend(git_port_names(registry))
        case FilesystemRegistry():
            port_names.extend(filesystem_port_names(registry))
        case _:
            raise TypeError(f"Not a registry implementation: {registry!r}")


def get_baseline_version(registry: RegistryImplementation, port_name: str) -> Version:
    if not is_port_name(port_name):
        raise BaselineMissingError(f"{port_name!r} is not a valid port name.")
    match registry:
        case BuiltinRegistry():
            return builtin_baseline_version(registry, port_name)
        case GitRegistry():
            return git_baseline_version(registry, port_name)
        case FilesystemRegistry():
            return filesystem_baseline_version(registry, port_name)
    raise TypeError(f"Not a registry implementation: {registry!r}")


def describe(registry: RegistryImplementation) -> str:
    """One-line human description, used in listings and diagnostics."""
    match registry:
        case BuiltinRegistry(baseline=baseline):
            return f"builtin ({baseline})" if baseline else "builtin"
        case GitRegistry(repo=repo, reference=reference):
            return f"git {repo} ({reference})"
        case FilesystemRegistry(root=root):
            return f"filesystem {root}"
    raise TypeError(f"Not a registry implementation: {registry!r}")
