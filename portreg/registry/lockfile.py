"""Lock file: a persisted cache from (repository, reference) to commit id.

Resolving a branch or tag needs a network round-trip, so the answer is kept
here and reused across sessions. An entry flagged ``stale`` must be checked
against the remote again before it is trusted; the check happens at most
once per session for any given reference.

The file is loaded once when a session starts, mutated in memory, and
written back once at the end if anything changed.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from portreg.errors import LockFileError

logger = logging.getLogger(__name__)

# (repository url, reference) -> commit id
Resolver = Callable[[str, str], str]


@dataclass
class LockEntryData:
    reference: str
    commit_id: str
    stale: bool = False


class LockEntry:
    """Handle onto one lock record, bound to the lock file that owns it."""

    def __init__(self, lockfile: LockFile, uri: str, data: LockEntryData):
        self._lockfile = lockfile
        self._uri = uri
        self._data = data

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def reference(self) -> str:
        return self._data.reference

    @property
    def commit_id(self) -> str:
        return self._data.commit_id

    @property
    def stale(self) -> bool:
        return self._data.stale

    def mark_stale(self) -> None:
        if not self._data.stale:
            self._data.stale = True
            self._lockfile.modified = True

    def ensure_up_to_date(self) -> None:
        """Re-resolve a stale entry against the remote.

        The stored commit id is replaced if the reference has moved. A fresh
        entry is left alone.
        """
        if not self._data.stale:
            return
        commit_id = self._lockfile.resolve(self._uri, self._data.reference)
        if commit_id != self._data.commit_id:
            logger.info(
                f"{self._uri} ({self._data.reference}) moved "
                f"{self._data.commit_id[:12]} -> {commit_id[:12]}"
            )
            self._data.commit_id = commit_id
        self._data.stale = False
        self._lockfile.modified = True

    def __repr__(self) -> str:
        return (
            f"LockEntry(uri={self._uri!r}, reference={self.reference!r}, "
            f"commit_id={self.commit_id!r}, stale={self.stale})"
        )


class LockFile:
    """In-memory lock data plus the dirty flag that drives persistence.

    ``lockdata`` maps a repository URL to every reference recorded for it.
    """

    def __init__(self, resolver: Resolver | None = None):
        self.lockdata: dict[str, list[LockEntryData]] = {}
        self.modified = False
        self.resolver = resolver
        self._verified: set[tuple[str, str]] = set()

    def find(self, repo: str, reference: str) -> LockEntry | None:
        for data in self.lockdata.get(repo, []):
            if data.reference == reference:
                return LockEntry(self, repo, data)
        return None

    def get_or_fetch(self, repo: str, reference: str) -> LockEntry:
        """Return the lock entry for ``reference`` in ``repo``, resolving it if needed.

        A fresh entry is returned without touching the network. A stale one is
        revalidated first; a missing one is resolved and recorded.
        """
        entry = self.find(repo, reference)
        if entry is None:
            commit_id = self.resolve(repo, reference)
            data = LockEntryData(reference=reference, commit_id=commit_id, stale=False)
            self.lockdata.setdefault(repo, []).append(data)
            self.modified = True
            return LockEntry(self, repo, data)

        if entry.stale:
            entry.ensure_up_to_date()
        else:
            logger.debug(f"Lock hit for {repo} ({reference}): {entry.commit_id}")
        return entry

    def verified_this_session(self, repo: str, reference: str) -> bool:
        return (repo, reference) in self._verified

    def resolve(self, repo: str, reference: str) -> str:
        if self.resolver is None:
            raise LockFileError(
                "Lock file has no way to resolve git references.",
                context={"repository": repo, "reference": reference},
            )
        commit_id = self.resolver(repo, reference)
        self._verified.add((repo, reference))
        return commit_id

    def mark_all_stale(self) -> None:
        for records in self.lockdata.values():
            for data in records:
                if not data.stale:
                    data.stale = True
                    self.modified = True

    def entries(self) -> list[LockEntry]:
        return [
            LockEntry(self, repo, data)
            for repo in sorted(self.lockdata)
            for data in self.lockdata[repo]
        ]

    # -- persistence --------------------------------------------------------

    def to_dict(self) -> dict[str, list[dict]]:
        return {
            repo: [
                {"reference": d.reference, "commit-id": d.commit_id, "stale": d.stale}
                for d in records
            ]
            for repo, records in sorted(self.lockdata.items())
        }

    @classmethod
    def from_dict(cls, data: object, resolver: Resolver | None = None) -> LockFile:
        if not isinstance(data, dict):
            raise LockFileError("Invalid lock file payload type.")
        lockfile = cls(resolver)
        for repo, records in data.items():
            if not isinstance(records, list):
                raise LockFileError("Invalid lock file entry list.", context={"repository": repo})
            for record in records:
                lockfile.lockdata.setdefault(repo, []).append(_parse_record(repo, record))
        return lockfile

    @classmethod
    def load(cls, path: str | Path, resolver: Resolver | None = None) -> LockFile:
        """Load a lock file; a missing file yields an empty lock."""
        lock_path = Path(path)
        if not lock_path.exists():
            return cls(resolver)
        try:
            data = json.loads(lock_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise LockFileError(
                "Invalid lock file JSON.", hint=str(exc), context={"path": str(lock_path)}
            ) from exc
        return cls.from_dict(data, resolver)

    def save(self, path: str | Path) -> Path:
        lock_path = Path(path)
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock_path.write_text(json.dumps(self.to_dict(), indent=2) + "\n", encoding="utf-8")
        self.modified = False
        logger.info(f"Wrote lock file {lock_path}")
        return lock_path

    def save_if_modified(self, path: str | Path) -> bool:
        if not self.modified:
            return False
        self.save(path)
        return True


def _parse_record(repo: str, record: object) -> LockEntryData:
    if not isinstance(record, dict):
        raise LockFileError("Invalid lock file entry.", context={"repository": repo})
    reference = record.get("reference")
    commit_id = record.get("commit-id")
    stale = record.get("stale", False)
    if not isinstance(reference, str) or not reference:
        raise LockFileError("Invalid lock file `reference` value.", context={"repository": repo})
    if not isinstance(commit_id, str) or not commit_id:
        raise LockFileError("Invalid lock file `commit-id` value.", context={"repository": repo})
    if not isinstance(stale, bool):
        raise LockFileError("Invalid lock file `stale` value.", context={"repository": repo})
    return LockEntryData(reference=reference, commit_id=commit_id, stale=stale)
