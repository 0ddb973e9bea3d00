"""Error types raised by the registry layer.

A port that simply does not exist in a registry is not an error: lookups
return ``None`` for that case. Everything else raises one of these.
"""

from __future__ import annotations

from collections.abc import Mapping


class RegistryError(Exception):
    """Base error carrying a message, an optional hint and some context."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [self.message]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        for key, value in self.context.items():
            if value:
                parts.append(f"  {key}: {value}")
        return "\n".join(parts)


class _IssuesError(RegistryError):
    """An error that lists every problem found in one document."""

    def __init__(
        self,
        message: str,
        *,
        issues: list[str] | None = None,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, hint=hint, context=context)
        self.issues = list(issues or [])

    def __str__(self) -> str:
        text = super().__str__()
        if self.issues:
            text += "\n" + "\n".join(f"  - {issue}" for issue in self.issues)
        return text


class VersionDbError(_IssuesError):
    """A version database, baseline or port manifest failed validation."""


class VersionNotFoundError(RegistryError):
    pass


class BaselineMissingError(RegistryError):
    pass


class GitTransportError(RegistryError):
    pass


class ConfigurationError(_IssuesError):
    pass


class LockFileError(RegistryError):
    pass
