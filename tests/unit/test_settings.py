from pathlib import Path

import pytest
from pydantic import ValidationError

from repo_chunker.settings import DEFAULT_MAX_SIZE, Settings


def test_settings_defaults() -> None:
    settings = Settings()

    assert settings.roots == []
    assert settings.max_size == DEFAULT_MAX_SIZE
    assert settings.stream is None
    assert settings.output_dir is None
    assert not settings.debug_output
    assert settings.continue_after_oversized is False


def test_settings_coerce_paths() -> None:
    settings = Settings(roots=["a", "b"], output_dir="out")

    assert settings.roots == [Path("a"), Path("b")]
    assert settings.output_dir == Path("out")


def test_settings_reject_non_positive_max_size() -> None:
    with pytest.raises(ValidationError):
        Settings(max_size=0)
