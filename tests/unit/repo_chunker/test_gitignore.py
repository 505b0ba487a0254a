from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from repo_chunker.gitignore import GitignoreMatcher

if TYPE_CHECKING:
    from pathlib import Path


@pytest.mark.unit
def test_from_root_without_gitignore_matches_nothing(tmp_path: Path) -> None:
    matcher = GitignoreMatcher.from_root(tmp_path)

    assert not matcher.matches("anything.log")
    assert not matcher.matches("build", is_dir=True)


@pytest.mark.unit
def test_from_root_reads_patterns(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("*.log\nbuild/\n# comment\n", encoding="utf-8")

    matcher = GitignoreMatcher.from_root(tmp_path)

    assert matcher.matches("test.log")
    assert matcher.matches("nested/dir/test.log")
    assert matcher.matches("build", is_dir=True)
    assert matcher.matches("build/output.txt")
    assert not matcher.matches("test.txt")


@pytest.mark.unit
def test_negated_pattern_whitelists_file() -> None:
    matcher = GitignoreMatcher(["*.md", "!KEEP.md"])

    assert matcher.matches("notes.md")
    assert not matcher.matches("KEEP.md")
