from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from repo_chunker.collector import collect_candidates
from repo_chunker.config import build_rule_set
from repo_chunker.exceptions import RootPathError
from repo_chunker.file_manipulation import format_size
from repo_chunker.git import GitRepository, load_commit_times
from repo_chunker.gitignore import GitignoreMatcher
from repo_chunker.logging import logger
from repo_chunker.output_construction import AssemblyReport, ChunkAssembler
from repo_chunker.sinks import DirectorySink, StreamSink, resolve_output_dir

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from repo_chunker.config import ChunkerConfig
    from repo_chunker.git import CommitLogProvider, TrackedFilesProvider
    from repo_chunker.logging import DebugSink
    from repo_chunker.sinks import OutputSink

    CommitLogFactory = Callable[[Path], CommitLogProvider | None]


def canonical_root(root: Path) -> Path:
    """Resolve `root` to an absolute directory path.

    Raises:
        RootPathError: if `root` does not exist or is not a directory.

    Returns:
        Path: the canonical root
    """
    try:
        resolved = root.resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise RootPathError(folder=root, message=f"Cannot resolve root path: {e}") from e
    if not resolved.is_dir():
        raise RootPathError(folder=root, message="Root path is not a directory")
    return resolved


def serialize_root(
    root: Path,
    *,
    assembler: ChunkAssembler,
    config: ChunkerConfig | None = None,
    commit_log_provider: CommitLogProvider | None = None,
    now: float | None = None,
) -> AssemblyReport:
    """Collect the candidate files of one root and feed them to `assembler`.

    Args:
        root (Path): the canonical root directory
        assembler (ChunkAssembler): the assembler that owns chunking and the sink
        config (ChunkerConfig | None): the user configuration
        commit_log_provider (CommitLogProvider | None): git history source; None disables recency scoring
        now (float | None): current Unix time, for tests

    Returns:
        AssemblyReport: what the assembler did for this root
    """
    rule_set = build_rule_set(config)
    logger.debug(
        "rules_resolved",
        root=str(root),
        ignore_patterns=len(rule_set.ignore_patterns),
        priority_tiers=len(rule_set.priority_tiers),
    )
    candidates = collect_candidates(
        root,
        rule_set,
        matcher=GitignoreMatcher.from_root(root),
        commit_times=load_commit_times(commit_log_provider),
        now=now,
    )
    return assembler.assemble(candidates)


def serialize_repo(
    roots: Sequence[Path],
    *,
    max_size: int,
    count_tokens: bool = False,
    stream: bool = False,
    output_dir: Path | None = None,
    config: ChunkerConfig | None = None,
    sink: OutputSink | None = None,
    debug_sink: DebugSink | None = None,
    stop_after_oversized: bool = True,
    commit_log_factory: CommitLogFactory | None = GitRepository,
    checksum_provider: TrackedFilesProvider | None = None,
    now: float | None = None,
) -> Path | None:
    """Serialize one or more directory trees into chunks.

    Every root is processed on its own (rules, `.gitignore`, git history) but all
    chunks go to the same sink, so chunk indexes keep increasing across roots.

    Args:
        roots (Sequence[Path]): the directories to serialize, in order
        max_size (int): maximum chunk size, in bytes or words
        count_tokens (bool): measure sizes in whitespace-delimited words
        stream (bool): write chunks to standard output instead of files
        output_dir (Path | None): explicit output directory
        config (ChunkerConfig | None): the user configuration
        sink (OutputSink | None): overrides the sink derived from `stream`/`output_dir`
        debug_sink (DebugSink | None): optional mirror for diagnostic messages
        stop_after_oversized (bool): end the run after the first oversized file is split
        commit_log_factory (CommitLogFactory | None): builds the git history source for a root;
            None disables recency scoring
        checksum_provider (TrackedFilesProvider | None): source for the default output directory
            name; defaults to git on the first root
        now (float | None): current Unix time, for tests

    Returns:
        Path | None: the directory holding the chunk files, or None when streaming
    """
    canonical = [canonical_root(root) for root in roots] or [canonical_root(Path.cwd())]
    logger.debug(
        "serialize_start",
        roots=[str(r) for r in canonical],
        max_size=format_size(max_size, count_tokens),
        count_tokens=count_tokens,
        stream=stream,
        output_dir=str(output_dir) if output_dir else None,
    )

    target: Path | None = None
    if sink is None:
        if checksum_provider is None:
            checksum_provider = GitRepository(canonical[0])
        target = resolve_output_dir(
            stream=stream,
            output_dir=output_dir,
            config=config,
            checksum_provider=checksum_provider,
        )
        sink = StreamSink() if target is None else DirectorySink(target, count_tokens=count_tokens)

    assembler = ChunkAssembler(
        max_size,
        sink=sink,
        count_tokens=count_tokens,
        debug_sink=debug_sink,
        stop_after_oversized=stop_after_oversized,
    )
    for root in canonical:
        report = serialize_root(
            root,
            assembler=assembler,
            config=config,
            commit_log_provider=commit_log_factory(root) if commit_log_factory is not None else None,
            now=now,
        )
        logger.debug(
            "root_serialized",
            root=str(root),
            chunks=report.chunks_written,
            files=report.files_written,
            skipped=report.files_skipped,
            stopped_early=report.stopped_early,
        )
        if report.stopped_early:
            break

    return target
