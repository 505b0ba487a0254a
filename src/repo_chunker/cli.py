"""
repo_chunker: serialize a repository into chunks for an LLM.

Overview
--------
Walks one or more directory trees, drops ignored and binary files, orders the
remaining text files by priority (least relevant first, so the most relevant
content sits at the end of the output) and writes them as size-bounded chunks:

    >>>> path/to/file
    <content>

Chunks go to standard output when it is piped, otherwise to
``chunk-<n>.txt`` files in ``--output-dir``, in the ``output_dir`` of the
configuration file, or in a temporary directory named after the repository
content.

Usage
-----
Run ``repo-chunker --help`` for full options. Common examples:
    - Stream the current directory into a pipe:
        repo-chunker | pbcopy

    - 128 KB chunks written to a directory:
        repo-chunker --max-size 128KB --output-dir ./chunks

    - Count whitespace-delimited tokens instead of bytes:
        repo-chunker --tokens --max-size 30000 src/ docs/
"""

from __future__ import annotations

import argparse
import os
import re
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from repo_chunker import __version__
from repo_chunker.config_file import find_config_file, load_config_file
from repo_chunker.exceptions import RepoChunkerError
from repo_chunker.logging import FileDebugSink, logger, setup_logging
from repo_chunker.serializer import serialize_repo
from repo_chunker.settings import DEBUG_OUTPUT_ENV, ENV_FILE, Settings

if TYPE_CHECKING:
    from collections.abc import Sequence

    from repo_chunker.logging import DebugSink

_SIZE_PATTERN = re.compile(r"^\s*(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>[kmgt]?i?b?)?\s*$", re.IGNORECASE)
_UNIT_POWERS = {"": 0, "k": 1, "m": 2, "g": 3, "t": 4}


def parse_size(text: str) -> int:
    """Parse a human size such as ``10MB``, ``128KB``, ``1.5GiB`` or ``4096``.

    Decimal units (``KB``, ``MB``...) are powers of 1000, binary units
    (``KiB``, ``MiB``...) powers of 1024. A bare number is taken as is, which
    is also how token counts are given.

    Args:
        text (str): The size to parse.

    Raises:
        argparse.ArgumentTypeError: If the text is not a positive size.

    Returns:
        int: The size in bytes (or tokens).
    """
    match = _SIZE_PATTERN.match(text)
    if not match:
        msg = f"invalid size: {text!r} (expected e.g. '10MB', '128KB', '1GiB' or '4096')"
        raise argparse.ArgumentTypeError(msg)
    unit = (match.group("unit") or "").lower()
    binary = "i" in unit
    prefix = unit.rstrip("b").rstrip("i")
    if binary and not prefix:
        msg = f"invalid size unit: {text!r}"
        raise argparse.ArgumentTypeError(msg)
    base = 1024 if binary else 1000
    size = int(float(match.group("value")) * base ** _UNIT_POWERS[prefix])
    if size <= 0:
        msg = f"size must be positive: {text!r}"
        raise argparse.ArgumentTypeError(msg)
    return size


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    p = argparse.ArgumentParser(
        prog="repo-chunker",
        description="Repository content chunker and serializer for LLM consumption.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("roots", nargs="*", type=Path, default=[], help="Directories to serialize (default: current directory).")
    p.add_argument(
        "--input-dirs",
        dest="input_dirs",
        nargs="+",
        action="extend",
        type=Path,
        default=[],
        help="Directories to serialize, in addition to the positional ones.",
    )
    p.add_argument(
        "--max-size",
        type=parse_size,
        default=parse_size("10MB"),
        help="Maximum size per chunk (e.g. '10MB', '128KB', '1GB'; a plain number in --tokens mode).",
    )
    p.add_argument("--tokens", action="store_true", help="Count size in tokens instead of bytes.")
    p.add_argument(
        "--stream",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Force writing to stdout (or to files with --no-stream). Default: stream when stdout is piped.",
    )
    p.add_argument("--output-dir", type=Path, default=None, help="Output directory for chunks.")
    p.add_argument("--config-file", type=Path, default=None, help="Configuration file (TOML or YAML).")
    p.add_argument("--debug", action="store_true", help="Enable debug output.")
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    p.add_argument(
        "--debug-output",
        type=str,
        default="",
        help=f"File that mirrors key debug messages (also ${DEBUG_OUTPUT_ENV}).",
    )
    p.add_argument(
        "--continue-after-oversized",
        action="store_true",
        help=(
            "Keep serializing the remaining files after splitting a file larger than --max-size, "
            "and write the files gathered before it instead of dropping them."
        ),
    )
    args = vars(p.parse_args(argv))
    args["roots"] = [*args.pop("roots"), *args.pop("input_dirs")]
    return Settings(**args)


def should_stream(settings: Settings) -> bool:
    """Decide the output mode: explicit flag first, then stdout being piped without an output dir."""
    if settings.stream is not None:
        return settings.stream
    return settings.output_dir is None and not sys.stdout.isatty()


def build_debug_sink(settings: Settings) -> DebugSink | None:
    if ENV_FILE:
        load_dotenv(ENV_FILE)
    target = settings.debug_output or os.environ.get(DEBUG_OUTPUT_ENV, "")
    return FileDebugSink(target) if target else None


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_args(argv)
    setup_logging(settings.log_file or None, debug=settings.debug)

    search_from = settings.roots[0] if settings.roots else Path.cwd()
    config_path = settings.config_file or find_config_file(search_from)
    config = load_config_file(config_path) if config_path else None

    try:
        output = serialize_repo(
            settings.roots,
            max_size=settings.max_size,
            count_tokens=settings.tokens,
            stream=should_stream(settings),
            output_dir=settings.output_dir,
            config=config,
            debug_sink=build_debug_sink(settings),
            stop_after_oversized=not settings.continue_after_oversized,
        )
    except RepoChunkerError as e:
        logger.error("run_failed", error=str(e))  # noqa: TRY400
        print(f"error: {e}", file=sys.stderr)
        return 1

    if output is not None:
        logger.info("output_written", path=str(output))
        print(f"Output written to {output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
