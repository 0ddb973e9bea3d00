"""Registry set: decides which registry owns a port name.

A port belongs to the custom registry whose package patterns claim it most
specifically (the longest literal match; an exact name beats a wildcard of
the same length; earlier declarations win remaining ties). A port no custom
registry claims belongs to the default registry, if there is one; otherwise
it has no registry at all.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Sequence

from portreg.errors import BaselineMissingError
from portreg.registry.builtin import BuiltinRegistry
from portreg.registry.git_registry import GitRegistry
from portreg.registry.implementation import (
    RegistryImplementation,
    get_all_port_names,
    get_baseline_version,
)
from portreg.registry.models import BUILTIN_REGISTRY_GIT_URL
from portreg.registry.patterns import package_match_prefix, package_pattern_matches
from portreg.versions import Version

logger = logging.getLogger(__name__)


class Registry:
    """A registry implementation plus the package patterns it claims."""

    def __init__(self, packages: Iterable[str], implementation: RegistryImplementation):
        if implementation is None:
            raise TypeError("Registry requires an implementation")
        self._packages = tuple(sorted(set(packages)))
        self._implementation = implementation

    @property
    def packages(self) -> tuple[str, ...]:
        """Claimed patterns, sorted lexicographically."""
        return self._packages

    @property
    def implementation(self) -> RegistryImplementation:
        return self._implementation

    def with_implementation(self, implementation: RegistryImplementation) -> Registry:
        return Registry(self._packages, implementation)

    def match_score(self, port_name: str) -> tuple[int, bool] | None:
        """Best ``(literal length, exact)`` over the claimed patterns, or None."""
        best = None
        for pattern in self._packages:
            if not package_pattern_matches(port_name, pattern):
                continue
            score = (package_match_prefix(port_name, pattern), not pattern.endswith("*"))
            if best is None or score > best:
                best = score
        return best

    def __repr__(self) -> str:
        return f"Registry(packages={list(self._packages)!r}, implementation={self._implementation!r})"


class RegistrySet:
    """The default registry plus the ordered custom registries of a session."""

    def __init__(
        self,
        default_registry: RegistryImplementation | None,
        registries: Sequence[Registry] = (),
    ):
        self._default_registry = default_registry
        self._registries = list(registries)

    @property
    def default_registry(self) -> RegistryImplementation | None:
        return self._default_registry

    @property
    def registries(self) -> tuple[Registry, ...]:
        return tuple(self._registries)

    def _ranked(self, port_name: str) -> list[Registry]:
        scored = []
        for index, registry in enumerate(self._registries):
            score = registry.match_score(port_name)
            if score is not None:
                scored.append((score, index, registry))
        scored.sort(key=lambda item: (-item[0][0], not item[0][1], item[1]))
        if len(scored) > 1 and scored[0][0] == scored[1][0]:
            logger.debug(
                f"Port {port_name} is claimed equally by registries #{scored[0][1]} "
                f"and #{scored[1][1]}; using #{scored[0][1]}"
            )
        return [registry for _, _, registry in scored]

    def registry_for_port(self, port_name: str) -> RegistryImplementation | None:
        """The registry that owns ``port_name``, or None if no registry does."""
        ranked = self._ranked(port_name)
        if ranked:
            return ranked[0].implementation
        return self._default_registry

    def registries_for_port(self, port_name: str) -> list[RegistryImplementation]:
        """Every registry able to resolve ``port_name``, highest priority first.

        The default registry, when set, comes last.
        """
        result = [registry.implementation for registry in self._ranked(port_name)]
        if self._default_registry is not None:
            result.append(self._default_registry)
        return result

    def baseline_for_port(self, port_name: str) -> Version:
        registry = self.registry_for_port(port_name)
        if registry is None:
            raise BaselineMissingError(
                f"No registry is configured for port {port_name}.",
                hint="Add a registry whose 'packages' claim the port, or set a default registry.",
            )
        return get_baseline_version(registry, port_name)

    def get_all_port_names(self) -> list[str]:
        names: list[str] = []
        if self._default_registry is not None:
            get_all_port_names(self._default_registry, names)
        for registry in self._registries:
            get_all_port_names(registry.implementation, names)
        return sorted(set(names))

    def is_default_builtin_registry(self) -> bool:
        if self._registries:
            return False
        match self._default_registry:
            case BuiltinRegistry():
                return True
            case GitRegistry(repo=repo):
                return _same_repository(repo, BUILTIN_REGISTRY_GIT_URL)
        return False

    def has_modifications(self) -> bool:
        """Whether the configuration differs from the plain builtin registry."""
        if self._registries:
            return True
        match self._default_registry:
            case BuiltinRegistry(baseline=""):
                return False
        return True

    def set_builtin_registry_baseline(self, baseline: str) -> None:
        """Pin every builtin registry in the set to ``baseline``."""
        default_is_builtin = isinstance(self._default_registry, BuiltinRegistry)
        if default_is_builtin:
            self._default_registry = dataclasses.replace(self._default_registry, baseline=baseline)
        else:
            logger.warning(
                "Overriding the builtin baseline, but the default registry is not the builtin registry."
            )
        self._registries = [
            registry.with_implementation(
                dataclasses.replace(registry.implementation, baseline=baseline)
            )
            if isinstance(registry.implementation, BuiltinRegistry)
            else registry
            for registry in self._registries
        ]


def _same_repository(left: str, right: str) -> bool:
    def normalize(url: str) -> str:
        url = url.strip().rstrip("/").lower()
        return url[: -len(".git")] if url.endswith(".git") else url

    return normalize(left) == normalize(right)
