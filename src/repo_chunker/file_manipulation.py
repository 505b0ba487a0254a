from __future__ import annotations

import os
import stat
import time
from pathlib import Path
from typing import TYPE_CHECKING

from repo_chunker.config import (
    BASELINE_PRIORITY,
    BINARY_FILE_EXTENSIONS,
    IGNORED_PRIORITY,
    RECENT_COMMIT_BONUS,
    RECENT_WINDOW_SECONDS,
    TEXT_SNIFF_BYTES,
)
from repo_chunker.logging import logger

if TYPE_CHECKING:
    from collections.abc import Collection, Iterator

    from repo_chunker.config import RuleSet
    from repo_chunker.git import CommitTimeIndex
    from repo_chunker.gitignore import GitignoreMatcher


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def is_regular_file(path: Path) -> bool:
    """Check if a file is regular, following symbolic links.

    Args:
        path (Path): path to test.

    Returns:
        bool: True if the file is regular, False otherwise.
    """
    try:
        st = path.stat()
        return stat.S_ISREG(st.st_mode)
    except OSError:
        return False


def walk_files(root: Path, matcher: GitignoreMatcher | None = None) -> Iterator[Path]:
    """Walk the directory tree rooted at `root` and yield every regular file.

    Symbolic links are followed, so a directory reachable through several links
    is listed under each of its paths. Only a link back to one of the current
    directory's ancestors is skipped, which breaks cycles. Directories matched
    by `matcher` are pruned.

    Args:
        root (Path): the root directory to walk
        matcher (GitignoreMatcher | None): optional `.gitignore` matcher used to prune directories

    Yields:
        Iterator[Path]: the files found, in traversal order
    """
    try:
        st = root.stat()
    except OSError as e:
        logger.debug("walk_failed", path=str(root), error=str(e))
        return
    yield from _walk_dir(root, root, matcher, ((st.st_dev, st.st_ino),))


def _walk_dir(
    current: Path,
    root: Path,
    matcher: GitignoreMatcher | None,
    ancestors: tuple[tuple[int, int], ...],
) -> Iterator[Path]:
    try:
        with os.scandir(current) as it:
            entries = list(it)
    except OSError as e:
        logger.debug("walk_failed", path=str(current), error=str(e))
        return
    subdirs: list[Path] = []
    for entry in entries:
        p = Path(entry.path)
        try:
            is_dir = entry.is_dir()
        except OSError:
            continue
        if not is_dir:
            if is_regular_file(p):
                yield p
            continue
        if matcher is not None and matcher.matches(relpath(p, root), is_dir=True):
            continue
        subdirs.append(p)
    for sub in subdirs:
        try:
            st = sub.stat()
        except OSError:
            continue
        key = (st.st_dev, st.st_ino)
        if key in ancestors:
            logger.debug("symlink_loop_skipped", path=str(sub))
            continue
        yield from _walk_dir(sub, root, matcher, (*ancestors, key))


def get_file_priority(rel: str, rule_set: RuleSet) -> int:
    """Determine the rule-based priority of a repository-relative path.

    Ignore patterns win over everything: any match returns -1. Otherwise the
    score of the first (highest) tier with a matching pattern is returned, and
    the baseline score when no tier matches.

    Args:
        rel (str): the path relative to the repository root, with POSIX separators
        rule_set (RuleSet): the resolved ignore and priority rules

    Returns:
        int: -1 for ignored paths, the matching tier score, or the baseline 40
    """
    if any(pat.search(rel) for pat in rule_set.ignore_patterns):
        return IGNORED_PRIORITY
    for tier in rule_set.priority_tiers:
        if tier.matches(rel):
            return tier.score
    return BASELINE_PRIORITY


def is_text_file(path: Path, binary_extensions: Collection[str] = BINARY_FILE_EXTENSIONS) -> bool:
    """Check if a file is text.

    Known binary extensions are rejected without touching the file. Otherwise
    the first 4 KiB are scanned and the file is binary iff a NUL byte shows up.
    A file that cannot be opened or read is treated as not text.

    Args:
        path (Path): the file path to check
        binary_extensions (Collection[str]): lowercase dotted extensions considered binary,
            on top of the built-in ones

    Returns:
        bool: True if the file is probably text, False otherwise
    """
    ext = path.suffix.lower()
    if ext and (ext in BINARY_FILE_EXTENSIONS or ext in binary_extensions):
        logger.debug("binary_by_extension", path=str(path))
        return False
    try:
        with path.open("rb") as f:
            head = f.read(TEXT_SNIFF_BYTES)
    except OSError as e:
        logger.debug("text_sniff_failed", path=str(path), error=str(e))
        return False
    if b"\x00" in head:
        logger.debug("binary_by_content", path=str(path))
        return False
    return True


def recent_cutoff(now: float | None = None) -> int:
    """Return the Unix timestamp before which a commit no longer counts as recent."""
    current = time.time() if now is None else now
    return max(0, int(current) - RECENT_WINDOW_SECONDS)


def apply_recency_bonus(
    rel: str,
    priority: int,
    commit_times: CommitTimeIndex | None,
    cutoff: int,
) -> int:
    """Add the recent-change bonus to `priority` when `rel` was committed at or after `cutoff`.

    Args:
        rel (str): the path relative to the repository root
        priority (int): the rule-based priority
        commit_times (CommitTimeIndex | None): last commit time per path; None disables the bonus
        cutoff (int): the oldest commit timestamp still considered recent

    Returns:
        int: the adjusted priority
    """
    if commit_times is None:
        return priority
    committed_at = commit_times.get(rel)
    if committed_at is not None and committed_at >= cutoff:
        logger.debug("recent_change_bonus", path=rel, bonus=RECENT_COMMIT_BONUS)
        return priority + RECENT_COMMIT_BONUS
    return priority


def read_text(path: Path) -> str | None:
    """Read a file as UTF-8 text, byte for byte (no newline translation).

    Args:
        path (Path): the file path to read

    Returns:
        str | None: the content, or None if the file cannot be read or decoded
    """
    try:
        return path.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("read_failed", path=str(path), error=str(e))
        return None


def count_size(text: str, count_tokens: bool) -> int:  # noqa: FBT001
    """Measure `text` as UTF-8 bytes, or as whitespace-delimited words in token mode."""
    if count_tokens:
        return len(text.split())
    return len(text.encode("utf-8"))


def format_size(size: int, is_tokens: bool) -> str:  # noqa: FBT001
    """Render a size for humans: `"12 tokens"` or `"1.5 KB"`.

    Args:
        size (int): the size to render
        is_tokens (bool): whether `size` counts tokens rather than bytes

    Returns:
        str: the formatted size
    """
    if is_tokens:
        return f"{size} tokens"
    value = float(size)
    units = ["B", "KB", "MB", "GB"]
    index = 0
    while value >= 1024 and index < len(units) - 1:  # noqa: PLR2004
        value /= 1024
        index += 1
    return f"{value:.1f} {units[index]}"
