"""Git operations: fetch references, read committed files, extract trees."""

from __future__ import annotations

import io
import logging
import re
import shutil
import tarfile
import tempfile
from pathlib import Path

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from portreg.errors import GitTransportError, VersionDbError

logger = logging.getLogger(__name__)

_COMMIT_SHA_RE = re.compile(r"^[0-9a-f]{40}$")


def is_git_commit_sha(value: str) -> bool:
    """True for a full 40-character lowercase hex commit id."""
    return bool(_COMMIT_SHA_RE.fullmatch(value))


def open_repo(repo_path: str | Path) -> Repo:
    """Open an existing repository (working tree or bare).

    Raises:
        GitTransportError: If the path is missing or is not a Git repo.
    """
    try:
        return Repo(repo_path)
    except (InvalidGitRepositoryError, NoSuchPathError) as exc:
        raise GitTransportError(
            f"Not a Git repository: {repo_path}",
            hint="The builtin registry must be a git clone to resolve versions by baseline.",
        ) from exc


def ensure_cache_repo(repo_path: str | Path) -> Repo:
    """Open the bare repository used to hold fetched registry objects, creating it if needed."""
    path = Path(repo_path)
    if path.exists():
        return open_repo(path)
    logger.info(f"Initializing registry object cache at {path}")
    return Repo.init(path, mkdir=True, bare=True)


def fetch_reference(repo: Repo, url: str, reference: str) -> str:
    """Fetch ``reference`` from ``url`` into ``repo`` and return the commit it points at."""
    logger.info(f"Fetching {reference} from {url}")
    try:
        repo.git.fetch("--quiet", url, reference)
        return repo.git.rev_parse("FETCH_HEAD^{commit}")
    except GitCommandError as exc:
        raise GitTransportError(
            "Failed to fetch registry reference.",
            hint="Ensure the repository and reference are valid and reachable.",
            context={"repository": url, "reference": reference, "stderr": str(exc.stderr).strip()},
        ) from exc


def has_object(repo: Repo, rev: str) -> bool:
    try:
        repo.git.cat_file("-e", rev)
    except GitCommandError:
        return False
    return True


def read_file_at(repo: Repo, commit: str, relative_path: str) -> str | None:
    """Return the text of ``relative_path`` as committed at ``commit``.

    Returns None when the file does not exist in that commit.

    Raises:
        GitTransportError: If the commit itself is not in the object store.
    """
    if not has_object(repo, f"{commit}^{{commit}}"):
        raise GitTransportError(
            "Commit is not available in the local object store.",
            context={"commit": commit, "repository": str(repo.git_dir)},
        )
    try:
        blob = repo.commit(commit).tree / relative_path
    except KeyError:
        return None
    if blob.type != "blob":
        return None
    try:
        return blob.data_stream.read().decode("utf-8")
    except UnicodeDecodeError as exc:
        raise VersionDbError(
            "Registry file is not valid UTF-8.",
            context={"commit": commit, "path": relative_path},
        ) from exc


def list_tree(repo: Repo, commit: str, relative_path: str) -> list[tuple[str, str]]:
    """List ``(name, type)`` for the entries of a directory at ``commit``.

    A missing directory yields an empty list.
    """
    try:
        tree = repo.commit(commit).tree / relative_path
    except KeyError:
        return []
    if tree.type != "tree":
        return []
    return [(item.name, item.type) for item in tree]


def extract_tree(repo: Repo, tree_sha: str, dest_root: str | Path) -> Path:
    """Materialize a git tree object as a directory named after the tree id.

    Extracted trees are immutable, so an existing directory is reused as-is.
    """
    dest_root = Path(dest_root)
    target = dest_root / tree_sha
    if target.exists():
        logger.debug(f"Reusing extracted tree {tree_sha}")
        return target

    if not has_object(repo, f"{tree_sha}^{{tree}}"):
        raise GitTransportError(
            "Git tree is not available in the local object store.",
            hint="The registry may be missing the commit that introduced this version.",
            context={"git-tree": tree_sha, "repository": str(repo.git_dir)},
        )

    dest_root.mkdir(parents=True, exist_ok=True)
    temp_dir = Path(tempfile.mkdtemp(prefix=f"{tree_sha[:12]}-", dir=dest_root))
    try:
        buffer = io.BytesIO()
        try:
            repo.archive(buffer, treeish=tree_sha, format="tar")
        except GitCommandError as exc:
            raise GitTransportError(
                "Failed to archive git tree.",
                context={"git-tree": tree_sha, "stderr": str(exc.stderr).strip()},
            ) from exc
        buffer.seek(0)
        with tarfile.open(fileobj=buffer) as archive:
            archive.extractall(temp_dir, filter="data")
        if not target.exists():
            temp_dir.rename(target)
            logger.info(f"Extracted tree {tree_sha} to {target}")
    finally:
        if temp_dir.exists():
            shutil.rmtree(temp_dir, ignore_errors=True)
    return target
