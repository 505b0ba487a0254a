from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from repo_chunker.collector import CandidateFile
from repo_chunker.output_construction import ChunkAssembler, split_oversized

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path


class ListSink:
    def __init__(self) -> None:
        self.chunks: list[list[tuple[str, str]]] = []

    def write_chunk(self, records: Sequence[tuple[str, str]]) -> int:
        self.chunks.append(list(records))
        return len(self.chunks) - 1


class ListDebugSink:
    def __init__(self) -> None:
        self.messages: list[str] = []

    def append(self, message: str) -> None:
        self.messages.append(message)


def candidate(root: Path, rel: str, content: str | bytes, priority: int = 40) -> CandidateFile:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8", newline="")
    return CandidateFile(path=path, rel=rel, priority=priority)


@pytest.mark.unit
def test_split_oversized_bytes() -> None:
    assert list(split_oversized("a" * 10, 4)) == ["aaaa", "aaaa", "aa"]


@pytest.mark.unit
def test_split_oversized_respects_utf8_boundaries() -> None:
    parts = list(split_oversized("ééé", 3))

    assert parts == ["é", "é", "é"]
    assert all(len(p.encode("utf-8")) <= 3 for p in parts)  # noqa: PLR2004


@pytest.mark.unit
def test_split_oversized_always_makes_progress() -> None:
    assert list(split_oversized("€€", 1)) == ["€", "€"]


@pytest.mark.unit
def test_split_oversized_tokens_cut_on_word_ends() -> None:
    parts = list(split_oversized("one two three four five", 2, count_tokens=True))

    assert parts == ["one two", "three four", "five"]


@pytest.mark.unit
def test_small_files_share_one_chunk_in_order(tmp_path: Path) -> None:
    sink = ListSink()
    files = [candidate(tmp_path, "a.txt", "hello"), candidate(tmp_path, "src/b.txt", "world", 50)]

    report = ChunkAssembler(1000, sink=sink).assemble(files)

    assert sink.chunks == [[("a.txt", "hello"), ("src/b.txt", "world")]]
    assert report.chunks_written == 1
    assert report.files_written == 2  # noqa: PLR2004
    assert not report.stopped_early


@pytest.mark.unit
def test_chunk_is_flushed_before_overflow(tmp_path: Path) -> None:
    sink = ListSink()
    files = [candidate(tmp_path, name, "x" * 6) for name in ("a.txt", "b.txt", "c.txt")]

    ChunkAssembler(12, sink=sink).assemble(files)

    assert [[rel for rel, _ in chunk] for chunk in sink.chunks] == [["a.txt", "b.txt"], ["c.txt"]]


@pytest.mark.unit
def test_oversized_file_is_split_and_ends_the_run(tmp_path: Path) -> None:
    sink = ListSink()
    debug = ListDebugSink()
    files = [
        candidate(tmp_path, "small.txt", "tiny"),
        candidate(tmp_path, "huge.txt", "a" * 10_000),
        candidate(tmp_path, "after.txt", "never written"),
    ]

    report = ChunkAssembler(4000, sink=sink, debug_sink=debug).assemble(files)

    assert [chunk[0][0] for chunk in sink.chunks] == [
        "huge.txt:part0",
        "huge.txt:part1",
        "huge.txt:part2",
    ]
    assert [len(chunk[0][1]) for chunk in sink.chunks] == [4000, 4000, 2000]
    assert report.stopped_early
    assert report.chunks_written == 3  # noqa: PLR2004
    assert report.files_written == 1
    assert report.files_dropped == 1
    assert "Dropped pending chunk before oversized file" in debug.messages


@pytest.mark.unit
def test_continue_after_oversized_flushes_pending_chunk_and_keeps_going(tmp_path: Path) -> None:
    sink = ListSink()
    files = [
        candidate(tmp_path, "a.txt", "small"),
        candidate(tmp_path, "src/huge.txt", "a" * 25),
        candidate(tmp_path, "after.txt", "ok"),
    ]

    report = ChunkAssembler(10, sink=sink, stop_after_oversized=False).assemble(files)

    assert [chunk[0][0] for chunk in sink.chunks] == [
        "a.txt",
        "src/huge.txt:part0",
        "src/huge.txt:part1",
        "src/huge.txt:part2",
        "after.txt",
    ]
    assert not report.stopped_early
    assert report.files_dropped == 0


@pytest.mark.unit
def test_token_mode_counts_words(tmp_path: Path) -> None:
    sink = ListSink()
    files = [candidate(tmp_path, "a.txt", "one two"), candidate(tmp_path, "b.txt", "three four")]

    ChunkAssembler(3, sink=sink, count_tokens=True).assemble(files)

    assert len(sink.chunks) == 2  # noqa: PLR2004


@pytest.mark.unit
def test_unreadable_file_is_skipped(tmp_path: Path) -> None:
    sink = ListSink()
    debug = ListDebugSink()
    files = [candidate(tmp_path, "latin.txt", b"caf\xe9"), candidate(tmp_path, "ok.txt", "fine")]

    report = ChunkAssembler(100, sink=sink, debug_sink=debug).assemble(files)

    assert sink.chunks == [[("ok.txt", "fine")]]
    assert report.files_skipped == 1
    assert "Skipped unreadable file" in debug.messages


@pytest.mark.unit
def test_debug_sink_receives_split_and_write_messages(tmp_path: Path) -> None:
    sink = ListSink()
    debug = ListDebugSink()

    ChunkAssembler(5, sink=sink, debug_sink=debug).assemble([candidate(tmp_path, "big.txt", "0123456789")])

    assert debug.messages == [
        "File exceeds chunk size, splitting into multiple chunks",
        "Written chunk 0",
        "Written chunk 1",
    ]


@pytest.mark.unit
def test_empty_input_writes_nothing() -> None:
    sink = ListSink()

    report = ChunkAssembler(10, sink=sink).assemble([])

    assert sink.chunks == []
    assert report.chunks_written == 0
