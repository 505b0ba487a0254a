from __future__ import annotations

from typing import TYPE_CHECKING

import pathspec

from repo_chunker.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path


class GitignoreMatcher:
    """Answer "is this repository-relative path ignored" using `.gitignore` semantics."""

    def __init__(self, lines: Iterable[str] = ()) -> None:
        self._spec = pathspec.PathSpec.from_lines("gitwildmatch", lines)

    @classmethod
    def from_root(cls, root: Path) -> GitignoreMatcher:
        """Build a matcher from `<root>/.gitignore`, or an empty one when there is none.

        Args:
            root (Path): the repository root

        Returns:
            GitignoreMatcher: the matcher for `root`
        """
        gitignore = root / ".gitignore"
        if not gitignore.is_file():
            logger.debug("gitignore_missing", root=str(root))
            return cls()
        logger.debug("gitignore_found", path=str(gitignore))
        with gitignore.open("r", encoding="utf-8", errors="replace") as f:
            return cls(f)

    def matches(self, rel: str, is_dir: bool = False) -> bool:  # noqa: FBT001, FBT002
        """Check whether `rel` (POSIX separators) is ignored.

        Args:
            rel (str): path relative to the repository root
            is_dir (bool): whether `rel` names a directory, so that `dir/` patterns apply

        Returns:
            bool: True if the path is ignored
        """
        if is_dir and not rel.endswith("/"):
            rel += "/"
        return self._spec.match_file(rel)
