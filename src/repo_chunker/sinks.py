from __future__ import annotations

import hashlib
import sys
import tempfile
import time
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, TextIO

from repo_chunker.exceptions import ChunkWriteError, OutputDirectoryError
from repo_chunker.file_manipulation import count_size, format_size
from repo_chunker.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from repo_chunker.config import ChunkerConfig
    from repo_chunker.git import TrackedFilesProvider

CHUNK_MARKER = ">>>> "
OUTPUT_DIR_PREFIX = "repo_chunker-"
CHECKSUM_LENGTH = 8


def serialize_chunk(records: Sequence[tuple[str, str]]) -> str:
    """Render chunk records in the wire format.

    Each record is a `>>>> <path>` marker line, the content verbatim, then a
    blank separator line. Records are concatenated with nothing in between.

    Args:
        records (Sequence[tuple[str, str]]): `(display path, content)` pairs

    Returns:
        str: the serialized chunk
    """
    return "".join(f"{CHUNK_MARKER}{path}\n{content}\n\n" for path, content in records)


class OutputSink(Protocol):
    """Destination of flushed chunks."""

    def write_chunk(self, records: Sequence[tuple[str, str]]) -> int:
        """Write one chunk and return its zero-based index."""
        ...


class StreamSink:
    """Write every chunk straight to a text stream, standard output by default."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream
        self._next_index = 0

    def write_chunk(self, records: Sequence[tuple[str, str]]) -> int:
        stream = self._stream if self._stream is not None else sys.stdout
        try:
            stream.write(serialize_chunk(records))
            stream.flush()
        except OSError as e:
            raise ChunkWriteError(destination="<stdout>", message=f"Cannot write chunk: {e}") from e
        index = self._next_index
        self._next_index += 1
        return index


class DirectorySink:
    """Write each chunk to `chunk-<index>.txt` inside a directory."""

    def __init__(self, directory: Path, *, count_tokens: bool = False) -> None:
        self.directory = directory
        self.count_tokens = count_tokens
        self._next_index = 0
        ensure_directory(directory)

    def chunk_path(self, index: int) -> Path:
        return self.directory / f"chunk-{index}.txt"

    def write_chunk(self, records: Sequence[tuple[str, str]]) -> int:
        index = self._next_index
        data = serialize_chunk(records)
        target = self.chunk_path(index)
        try:
            target.write_bytes(data.encode("utf-8"))
        except OSError as e:
            raise ChunkWriteError(destination=str(target), message=f"Cannot write chunk: {e}") from e
        self._next_index += 1
        logger.info(
            "chunk_written",
            index=index,
            files=len(records),
            size=format_size(count_size(data, self.count_tokens), self.count_tokens),
            path=str(target),
        )
        return index


def ensure_directory(directory: Path) -> Path:
    """Create `directory` (and its parents) if needed.

    Raises:
        OutputDirectoryError: if the directory cannot be created.

    Returns:
        Path: the directory
    """
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputDirectoryError(folder=directory, message=f"Cannot create output directory: {e}") from e
    return directory


def repo_checksum(provider: TrackedFilesProvider | None, now: float | None = None) -> str:
    """Compute a short fingerprint of the tracked content of a repository.

    The fingerprint is the first 8 hex characters of a SHA-256 over the
    `path:hash` lines of the tracked files, sorted by path. When version
    control is unavailable, the current time in milliseconds (hex) is used
    instead, so every such run gets a fresh value.

    Args:
        provider (TrackedFilesProvider | None): source of `(path, content hash)` pairs
        now (float | None): current Unix time, for tests

    Returns:
        str: the fingerprint
    """
    tracked = provider.list_tracked_files_with_hash() if provider is not None else None
    if tracked is None:
        millis = int((time.time() if now is None else now) * 1000)
        return f"{millis:x}"
    h = hashlib.sha256()
    for path, blob in sorted(tracked):
        h.update(f"{path}:{blob}\n".encode())
    return h.hexdigest()[:CHECKSUM_LENGTH]


def resolve_output_dir(
    *,
    stream: bool,
    output_dir: Path | None = None,
    config: ChunkerConfig | None = None,
    checksum_provider: TrackedFilesProvider | None = None,
) -> Path | None:
    """Pick and create the directory that receives chunk files.

    Precedence: stream mode (no directory), then the explicit `output_dir`, then
    the configuration's `output_dir`, then a temporary directory named after the
    repository checksum, so that unchanged trees map to the same location.

    Args:
        stream (bool): whether chunks go to standard output
        output_dir (Path | None): directory requested on the command line
        config (ChunkerConfig | None): the user configuration
        checksum_provider (TrackedFilesProvider | None): source for the repository checksum

    Returns:
        Path | None: the created directory, or None in stream mode
    """
    if stream:
        return None
    if output_dir is not None:
        logger.debug("output_dir_from_cli", path=str(output_dir))
        return ensure_directory(output_dir)
    if config is not None and config.output_dir:
        logger.debug("output_dir_from_config", path=config.output_dir)
        return ensure_directory(Path(config.output_dir))
    directory = Path(tempfile.gettempdir()) / f"{OUTPUT_DIR_PREFIX}{repo_checksum(checksum_provider)}"
    logger.debug("output_dir_default", path=str(directory))
    return ensure_directory(directory)
