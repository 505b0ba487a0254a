from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from repo_chunker.file_manipulation import count_size, format_size, read_text
from repo_chunker.logging import debug_event

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from repo_chunker.collector import CandidateFile
    from repo_chunker.logging import DebugSink
    from repo_chunker.sinks import OutputSink

_WORD = re.compile(r"\S+")


@dataclass
class Chunk:
    """Records waiting to be flushed, with their accumulated size."""

    records: list[tuple[str, str]] = field(default_factory=list)
    size: int = 0

    def add(self, display_path: str, content: str, size: int) -> None:
        self.records.append((display_path, content))
        self.size += size

    def __bool__(self) -> bool:
        return bool(self.records)


@dataclass
class AssemblyReport:
    """What an assembly pass did."""

    chunks_written: int = 0
    files_written: int = 0
    files_skipped: int = 0
    files_dropped: int = 0
    stopped_early: bool = False


def _byte_cut(text: str, max_size: int) -> int:
    encoded = text.encode("utf-8")
    if len(encoded) <= max_size:
        return len(text)
    # a partial multi-byte sequence at the cut is dropped
    cut = len(encoded[:max_size].decode("utf-8", errors="ignore"))
    return max(cut, 1)


def _token_cut(text: str, max_size: int) -> int:
    end = 0
    for count, match in enumerate(_WORD.finditer(text), start=1):
        if count > max(max_size, 1):
            return end
        end = match.end()
    return len(text)


def split_oversized(content: str, max_size: int, count_tokens: bool = False) -> Iterator[str]:  # noqa: FBT001, FBT002
    """Split text that does not fit in one chunk into bounded parts.

    In byte mode each part holds at most `max_size` UTF-8 bytes, cut on a
    character boundary. In token mode each part holds at most `max_size`
    whitespace-delimited words and ends right after its last word. Every part
    holds at least one character (or word), and whitespace at the start of the
    remainder is dropped between parts.

    Args:
        content (str): the text to split
        max_size (int): the maximum part size, in bytes or words
        count_tokens (bool): whether sizes count words instead of bytes

    Yields:
        Iterator[str]: the successive parts
    """
    remaining = content
    while remaining:
        cut = _token_cut(remaining, max_size) if count_tokens else _byte_cut(remaining, max_size)
        yield remaining[:cut]
        remaining = remaining[cut:].lstrip()


class ChunkAssembler:
    """Group priority-ordered candidate files into chunks no larger than `max_size`.

    Files are appended to the current chunk until the next one would overflow
    it, at which point the chunk is handed to the sink. A file that is larger
    than `max_size` on its own is split into `<path>:part<N>` chunks.

    Args:
        max_size: maximum chunk size, in bytes or whitespace-delimited words
        sink: destination of flushed chunks
        count_tokens: measure sizes in words instead of bytes
        debug_sink: optional mirror for diagnostic messages
        stop_after_oversized: end the whole pass right after splitting an oversized
            file, which is the historical behavior: the files still pending in the
            current chunk are dropped, not written. Set it to False to flush them
            before the parts and keep going with the remaining candidates
    """

    def __init__(
        self,
        max_size: int,
        *,
        sink: OutputSink,
        count_tokens: bool = False,
        debug_sink: DebugSink | None = None,
        stop_after_oversized: bool = True,
    ) -> None:
        self.max_size = max_size
        self.sink = sink
        self.count_tokens = count_tokens
        self.debug_sink = debug_sink
        self.stop_after_oversized = stop_after_oversized
        self._chunk = Chunk()
        self._report = AssemblyReport()

    def assemble(self, candidates: Iterable[CandidateFile]) -> AssemblyReport:
        """Read, group and flush every candidate, in the given order.

        Args:
            candidates (Iterable[CandidateFile]): the files, least relevant first

        Returns:
            AssemblyReport: counters describing the pass
        """
        self._chunk = Chunk()
        self._report = AssemblyReport()
        for candidate in candidates:
            content = read_text(candidate.path)
            if content is None:
                self._report.files_skipped += 1
                debug_event("Skipped unreadable file", self.debug_sink, path=candidate.rel)
                continue
            size = count_size(content, self.count_tokens)

            if size > self.max_size:
                self._emit_oversized(candidate.rel, content, size)
                if self._should_stop_after_oversized():
                    self._report.stopped_early = True
                    return self._report
                continue

            if self._chunk.size + size > self.max_size and self._chunk:
                self._flush()
            self._chunk.add(candidate.rel, content, size)
            self._report.files_written += 1

        self._flush()
        return self._report

    def _should_stop_after_oversized(self) -> bool:
        return self.stop_after_oversized

    def _emit_oversized(self, rel: str, content: str, size: int) -> None:
        debug_event(
            "File exceeds chunk size, splitting into multiple chunks",
            self.debug_sink,
            path=rel,
            size=format_size(size, self.count_tokens),
            max_size=format_size(self.max_size, self.count_tokens),
        )
        if self._should_stop_after_oversized():
            self._drop_pending()
        else:
            self._flush()
        for part, piece in enumerate(split_oversized(content, self.max_size, self.count_tokens)):
            self._write([(f"{rel}:part{part}", piece)])
        self._report.files_written += 1

    def _drop_pending(self) -> None:
        if not self._chunk:
            return
        dropped = len(self._chunk.records)
        debug_event(
            "Dropped pending chunk before oversized file",
            self.debug_sink,
            files=[path for path, _ in self._chunk.records],
        )
        self._report.files_written -= dropped
        self._report.files_dropped += dropped
        self._chunk = Chunk()

    def _flush(self) -> None:
        if not self._chunk:
            return
        self._write(self._chunk.records)
        self._chunk = Chunk()

    def _write(self, records: list[tuple[str, str]]) -> None:
        index = self.sink.write_chunk(records)
        self._report.chunks_written += 1
        debug_event(f"Written chunk {index}", self.debug_sink, files=len(records))
