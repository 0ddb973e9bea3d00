"""Registries: where port versions come from.

The registry layer provides:
- Resolution: which configured registry owns a port name
- Backends: the builtin tree, remote git registries, filesystem registries
- Version databases: the per-port record of known versions and their sources
- Locking: a persisted cache of git references resolved to commits
"""
