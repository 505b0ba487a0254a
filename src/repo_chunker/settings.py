from __future__ import annotations

from pathlib import Path

from dotenv import find_dotenv
from pydantic import BaseModel, ConfigDict, Field

ENV_FILE = find_dotenv(usecwd=True)
DEBUG_OUTPUT_ENV = "REPO_CHUNKER_DEBUG_OUTPUT"
DEFAULT_MAX_SIZE = 10_000_000


class Settings(BaseModel):
    """Run parameters for the repo_chunker command line."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    roots: list[Path] = Field(default_factory=list, description="Directories to serialize.")
    max_size: int = Field(default=DEFAULT_MAX_SIZE, gt=0, description="Maximum size per chunk.")
    tokens: bool = Field(default=False, description="Count size in whitespace-delimited tokens.")
    stream: bool | None = Field(
        default=None,
        description="Write to stdout; None means stream when stdout is piped and no output dir is set.",
    )
    output_dir: Path | None = Field(default=None, description="Output directory for chunks.")
    config_file: Path | None = Field(default=None, description="Explicit configuration file.")
    debug: bool = Field(default=False, description="Enable debug output.")
    log_file: str = Field(default="", description="Log file path.")
    debug_output: str = Field(default="", description="File that mirrors debug messages.")
    continue_after_oversized: bool = Field(
        default=False,
        description="Keep processing files after splitting an oversized one.",
    )
