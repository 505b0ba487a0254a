from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Protocol

import structlog

_CONFIGURED_LEVEL: int | None = None


class DebugSink(Protocol):
    """Destination that mirrors diagnostic messages, one per call."""

    def append(self, message: str) -> None: ...


class FileDebugSink:
    """Append diagnostic messages as lines to a file.

    The file is opened for each message so that an observer (typically a test)
    can read it while the run is still going.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def append(self, message: str) -> None:
        with self.path.open("a", encoding="utf-8") as f:
            f.write(f"{message}\n")


def setup_logging(filename: str | Path | None = None, *, debug: bool = False) -> structlog.BoundLogger:
    """Set up structured logging for the repo_chunker package.

    Args:
        filename: Optional path to a log file. If None, logs are written to stderr.
        debug: Lower the threshold from INFO to DEBUG.

    Returns:
        A structlog logger instance configured for the repo_chunker package.
    """
    global _CONFIGURED_LEVEL  # noqa: PLW0603
    level = logging.DEBUG if debug else logging.INFO
    if _CONFIGURED_LEVEL is None or filename or level != _CONFIGURED_LEVEL:
        handlers: list[logging.Handler] = []
        if filename:
            handlers.append(logging.FileHandler(str(filename), encoding="utf-8"))
        else:
            handlers.append(logging.StreamHandler(sys.stderr))

        logging.basicConfig(
            level=level,
            handlers=handlers,
            format="%(message)s",
            force=True,
        )
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=False,
        )
        _CONFIGURED_LEVEL = level

    return structlog.get_logger("repo_chunker")


logger = setup_logging()


def debug_event(message: str, debug_sink: DebugSink | None = None, **context: object) -> None:
    """Log a debug message and mirror it to `debug_sink` when one is injected."""
    logger.debug(message, **context)
    if debug_sink is not None:
        debug_sink.append(message)
