"""Version-control metadata providers backed by the ``git`` command line."""

from __future__ import annotations

import subprocess  # noqa: S404
from typing import TYPE_CHECKING, Protocol

from repo_chunker.exceptions import GitCommandError, NotAGitRepositoryError
from repo_chunker.logging import logger

if TYPE_CHECKING:
    from pathlib import Path

CommitTimeIndex = dict[str, int]


class TrackedFilesProvider(Protocol):
    """List tracked files with their content hash, or None when unavailable."""

    def list_tracked_files_with_hash(self) -> list[tuple[str, str]] | None: ...


class CommitLogProvider(Protocol):
    """Read `(timestamp, changed paths)` entries newest first, or None when unavailable."""

    def commit_log(self) -> list[tuple[int, list[str]]] | None: ...


class GitRepository:
    """Both git capabilities for the working tree rooted at `root`."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def _run_git(self, args: list[str], stdin: str | None = None) -> str:
        if not (self.root / ".git").exists():
            raise NotAGitRepositoryError(folder=self.root)
        out = subprocess.run(  # noqa: S603
            ["git", *args],  # noqa: S607
            cwd=str(self.root),
            input=stdin,
            text=True,
            capture_output=True,
            check=False,
        )
        if out.returncode != 0:
            raise GitCommandError(
                command=" ".join(["git", *args]),
                returncode=out.returncode,
                stdout=out.stdout,
                stderr=out.stderr,
            )
        return out.stdout

    def list_tracked_files_with_hash(self) -> list[tuple[str, str]] | None:
        """Use `git ls-files` and `git hash-object` to hash every tracked file.

        Returns:
            list[tuple[str, str]] | None: `(path, blob hash)` pairs, or None when git is unavailable
        """
        try:
            listed = [line.strip() for line in self._run_git(["ls-files", "-c", "--exclude-standard"]).splitlines()]
            # tracked but deleted from the working tree: hash-object would fail on them
            files = [f for f in listed if f and (self.root / f).is_file()]
            if not files:
                return []
            hashes = self._run_git(["hash-object", "--stdin-paths"], stdin="\n".join(files) + "\n").split()
        except (NotAGitRepositoryError, GitCommandError, OSError) as e:
            logger.debug("git_tracked_files_unavailable", root=str(self.root), error=str(e))
            return None
        if len(hashes) != len(files):
            logger.debug("git_hash_count_mismatch", root=str(self.root), files=len(files), hashes=len(hashes))
            return None
        return list(zip(files, hashes, strict=True))

    def commit_log(self) -> list[tuple[int, list[str]]] | None:
        """Read the commit history as `(commit timestamp, changed paths)`, newest first.

        Returns:
            list[tuple[int, list[str]]] | None: the history, or None when git is unavailable
        """
        try:
            raw = self._run_git(["log", "--pretty=format:%ct", "--name-only", "--no-merges", "--relative"])
        except (NotAGitRepositoryError, GitCommandError, OSError) as e:
            logger.debug("git_log_unavailable", root=str(self.root), error=str(e))
            return None
        return parse_commit_log(raw)


def parse_commit_log(raw: str) -> list[tuple[int, list[str]]]:
    """Parse `git log --pretty=format:%ct --name-only` output.

    The output is a sequence of blocks: a line holding the commit timestamp,
    followed by one line per changed path.

    Args:
        raw (str): the command output

    Returns:
        list[tuple[int, list[str]]]: one entry per commit, in output order
    """
    entries: list[tuple[int, list[str]]] = []
    for line in raw.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.isdigit():
            entries.append((int(stripped), []))
        elif entries:
            entries[-1][1].append(stripped)
    return entries


def load_commit_times(provider: CommitLogProvider | None) -> CommitTimeIndex | None:
    """Build the path -> last commit time index from a commit log provider.

    Args:
        provider: the commit log source, or None to disable recency scoring

    Returns:
        CommitTimeIndex | None: the newest commit timestamp per path, or None when no history is available
    """
    if provider is None:
        return None
    log = provider.commit_log()
    if log is None:
        logger.debug("commit_times_disabled")
        return None
    index: CommitTimeIndex = {}
    for timestamp, paths in log:
        for path in paths:
            index.setdefault(path, timestamp)
    return index
