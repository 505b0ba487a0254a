from __future__ import annotations

from pathlib import Path  # noqa: TC003
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from repo_chunker.file_manipulation import (
    apply_recency_bonus,
    get_file_priority,
    is_text_file,
    recent_cutoff,
    relpath,
    walk_files,
)
from repo_chunker.logging import logger

if TYPE_CHECKING:
    from repo_chunker.config import RuleSet
    from repo_chunker.git import CommitTimeIndex
    from repo_chunker.gitignore import GitignoreMatcher


class CandidateFile(BaseModel):
    """A file selected for serialization.

    Attributes:
        path: Absolute path to the file on disk.
        rel: Path relative to the repository root, with POSIX separators.
        priority: Final priority (rules plus recency bonus); higher is more relevant.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: Path = Field(..., description="Absolute file path")
    rel: str = Field(..., description="File path relative to repository root")
    priority: int = Field(..., ge=0, description="Resolved priority")


def classify_file(
    path: Path,
    root: Path,
    rule_set: RuleSet,
    *,
    matcher: GitignoreMatcher,
    commit_times: CommitTimeIndex | None,
    cutoff: int,
) -> CandidateFile | None:
    """Decide whether one file is a candidate and compute its priority.

    The checks run in a fixed order: `.gitignore`, ignore patterns, binary
    detection, then the recency bonus, so the bonus never revives an ignored file.

    Args:
        path (Path): the file to classify
        root (Path): the repository root
        rule_set (RuleSet): the resolved ignore and priority rules
        matcher (GitignoreMatcher): the `.gitignore` matcher of `root`
        commit_times (CommitTimeIndex | None): last commit time per path, if known
        cutoff (int): the oldest commit timestamp still considered recent

    Returns:
        CandidateFile | None: the candidate, or None when the file is excluded
    """
    rel = relpath(path, root)
    if matcher.matches(rel):
        logger.debug("skipped_gitignore", path=rel)
        return None
    priority = get_file_priority(rel, rule_set)
    if priority < 0:
        logger.debug("skipped_ignore_pattern", path=rel)
        return None
    if not is_text_file(path, rule_set.binary_extensions):
        logger.debug("skipped_binary", path=rel)
        return None
    return CandidateFile(
        path=path,
        rel=rel,
        priority=apply_recency_bonus(rel, priority, commit_times, cutoff),
    )


def collect_candidates(
    root: Path,
    rule_set: RuleSet,
    *,
    matcher: GitignoreMatcher,
    commit_times: CommitTimeIndex | None = None,
    now: float | None = None,
) -> list[CandidateFile]:
    """Collect every candidate file under `root`, least relevant first.

    The sort is stable and ascending on priority, so the most relevant files
    end up last in the output, and files with equal priority keep their
    discovery order.

    Args:
        root (Path): the canonical repository root
        rule_set (RuleSet): the resolved ignore and priority rules
        matcher (GitignoreMatcher): the `.gitignore` matcher of `root`
        commit_times (CommitTimeIndex | None): last commit time per path; None disables the recency bonus
        now (float | None): current Unix time, for tests

    Returns:
        list[CandidateFile]: the candidates in assembly order
    """
    cutoff = recent_cutoff(now)
    candidates: list[CandidateFile] = []
    for path in walk_files(root, matcher):
        candidate = classify_file(
            path,
            root,
            rule_set,
            matcher=matcher,
            commit_times=commit_times,
            cutoff=cutoff,
        )
        if candidate is not None:
            candidates.append(candidate)
    logger.debug("candidates_collected", root=str(root), count=len(candidates))
    return sorted(candidates, key=lambda c: c.priority)
