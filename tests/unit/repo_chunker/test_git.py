from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING

import pytest

from repo_chunker import git
from repo_chunker.git import GitRepository, load_commit_times, parse_commit_log
from repo_chunker.sinks import repo_checksum

if TYPE_CHECKING:
    from pathlib import Path

    from pytest_mock import MockerFixture


class FakeHistory:
    def __init__(self, log: list[tuple[int, list[str]]] | None) -> None:
        self.log = log

    def commit_log(self) -> list[tuple[int, list[str]]] | None:
        return self.log


def completed(stdout: str, returncode: int = 0) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=["git"], returncode=returncode, stdout=stdout, stderr="boom")


@pytest.mark.unit
def test_parse_commit_log_groups_paths_by_commit() -> None:
    raw = "1700000300\nsrc/a.py\nREADME.md\n\n1700000200\nsrc/a.py\n\n1700000100\ndocs/b.md\n"

    assert parse_commit_log(raw) == [
        (1700000300, ["src/a.py", "README.md"]),
        (1700000200, ["src/a.py"]),
        (1700000100, ["docs/b.md"]),
    ]


@pytest.mark.unit
def test_load_commit_times_keeps_newest_entry() -> None:
    history = FakeHistory([(300, ["a.py"]), (200, ["a.py", "b.py"])])

    assert load_commit_times(history) == {"a.py": 300, "b.py": 200}


@pytest.mark.unit
def test_load_commit_times_unavailable() -> None:
    assert load_commit_times(None) is None
    assert load_commit_times(FakeHistory(None)) is None


@pytest.mark.unit
def test_git_repository_without_dot_git_is_unavailable(tmp_path: Path, mocker: MockerFixture) -> None:
    run = mocker.patch.object(git.subprocess, "run")
    repo = GitRepository(tmp_path)

    assert repo.commit_log() is None
    assert repo.list_tracked_files_with_hash() is None
    run.assert_not_called()


@pytest.mark.unit
def test_git_repository_commit_log_runs_git_log(tmp_path: Path, mocker: MockerFixture) -> None:
    (tmp_path / ".git").mkdir()
    run = mocker.patch.object(git.subprocess, "run", return_value=completed("1700000000\nsrc/a.py\n"))

    assert GitRepository(tmp_path).commit_log() == [(1700000000, ["src/a.py"])]
    args = run.call_args.args[0]
    assert args[:2] == ["git", "log"]
    assert "--name-only" in args
    assert run.call_args.kwargs["cwd"] == str(tmp_path)


@pytest.mark.unit
def test_git_repository_failed_command_is_unavailable(tmp_path: Path, mocker: MockerFixture) -> None:
    (tmp_path / ".git").mkdir()
    mocker.patch.object(git.subprocess, "run", return_value=completed("", returncode=128))

    assert GitRepository(tmp_path).commit_log() is None


@pytest.mark.unit
def test_git_repository_missing_git_binary_is_unavailable(tmp_path: Path, mocker: MockerFixture) -> None:
    (tmp_path / ".git").mkdir()
    mocker.patch.object(git.subprocess, "run", side_effect=FileNotFoundError("git"))

    assert GitRepository(tmp_path).list_tracked_files_with_hash() is None


@pytest.mark.unit
def test_git_repository_lists_tracked_files_with_hash(tmp_path: Path, mocker: MockerFixture) -> None:
    (tmp_path / ".git").mkdir()
    (tmp_path / "a.txt").write_text("a", encoding="utf-8")
    (tmp_path / "b.txt").write_text("b", encoding="utf-8")
    run = mocker.patch.object(
        git.subprocess,
        "run",
        side_effect=[completed("b.txt\na.txt\n"), completed("hash-b\nhash-a\n")],
    )

    tracked = GitRepository(tmp_path).list_tracked_files_with_hash()

    assert tracked == [("b.txt", "hash-b"), ("a.txt", "hash-a")]
    assert run.call_args.kwargs["input"] == "b.txt\na.txt\n"


@pytest.mark.unit
def test_git_repository_skips_tracked_files_deleted_from_worktree(tmp_path: Path, mocker: MockerFixture) -> None:
    (tmp_path / ".git").mkdir()
    (tmp_path / "a.txt").write_text("a", encoding="utf-8")
    run = mocker.patch.object(
        git.subprocess,
        "run",
        side_effect=[completed("a.txt\nb.txt\n"), completed("hash-a\n")],
    )

    tracked = GitRepository(tmp_path).list_tracked_files_with_hash()

    assert tracked == [("a.txt", "hash-a")]
    assert run.call_args.kwargs["input"] == "a.txt\n"


@pytest.mark.unit
def test_git_repository_checksum_is_stable_with_deleted_tracked_file(tmp_path: Path, mocker: MockerFixture) -> None:
    (tmp_path / ".git").mkdir()
    (tmp_path / "a.txt").write_text("a", encoding="utf-8")
    mocker.patch.object(
        git.subprocess,
        "run",
        side_effect=[completed("a.txt\nb.txt\n"), completed("hash-a\n")] * 2,
    )
    repo = GitRepository(tmp_path)

    assert repo_checksum(repo, now=1.0) == repo_checksum(repo, now=2.0)


@pytest.mark.unit
def test_git_repository_hash_count_mismatch_is_unavailable(tmp_path: Path, mocker: MockerFixture) -> None:
    (tmp_path / ".git").mkdir()
    (tmp_path / "a.txt").write_text("a", encoding="utf-8")
    (tmp_path / "b.txt").write_text("b", encoding="utf-8")
    mocker.patch.object(
        git.subprocess,
        "run",
        side_effect=[completed("a.txt\nb.txt\n"), completed("hash-a\n")],
    )

    assert GitRepository(tmp_path).list_tracked_files_with_hash() is None
