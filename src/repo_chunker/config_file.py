"""Discovery and loading of ``repo_chunker.toml`` / ``repo_chunker.yaml`` configuration files."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Any

import tomlkit
import yaml
from pydantic import ValidationError
from tomlkit.exceptions import TOMLKitError

from repo_chunker.config import CONFIG_FILE_NAMES, ChunkerConfig, ConfigError, validate_config
from repo_chunker.logging import logger

if TYPE_CHECKING:
    from pathlib import Path


def find_config_file(start: Path) -> Path | None:
    """Find the nearest configuration file by searching upward from ``start``.

    In each directory, ``repo_chunker.toml`` wins over ``repo_chunker.yaml`` and
    ``repo_chunker.yml``.

    Args:
        start (Path): Starting directory.

    Returns:
        Path | None: Located configuration file, or None when there is none up to the filesystem root.
    """
    current = start.resolve()
    while True:
        for name in CONFIG_FILE_NAMES:
            candidate = current / name
            logger.debug("config_lookup", candidate=str(candidate))
            if candidate.is_file():
                logger.debug("config_found", path=str(candidate))
                return candidate
        if current.parent == current:
            return None
        current = current.parent


def parse_config_text(text: str, *, yaml_format: bool) -> dict[str, Any]:
    """Parse raw configuration text into a plain mapping.

    Args:
        text (str): File content.
        yaml_format (bool): Parse as YAML instead of TOML.

    Raises:
        ValueError: If the document does not contain a top-level mapping.

    Returns:
        dict[str, Any]: Parsed configuration values.
    """
    data = (yaml.safe_load(text) or {}) if yaml_format else tomlkit.parse(text).unwrap()
    if not isinstance(data, dict):
        msg = "Configuration must contain a top-level table."
        raise ValueError(msg)
    return data


def _shape_errors(exc: ValidationError) -> list[ConfigError]:
    return [
        ConfigError(field=".".join(str(part) for part in err["loc"]) or "config", message=err["msg"])
        for err in exc.errors()
    ]


def report_config_errors(path: Path, errors: list[ConfigError]) -> None:
    """Surface configuration problems on stderr and in the log."""
    print(f"Invalid configuration in {path}:", file=sys.stderr)
    for error in errors:
        print(f"  {error}", file=sys.stderr)
        logger.warning("config_invalid", path=str(path), field=error.field, message=error.message)


def load_config_file(path: Path) -> ChunkerConfig | None:
    """Load and validate a configuration file.

    Any failure (unreadable file, syntax error, unexpected shape, invalid value)
    is reported and the whole file is discarded, so that the run falls back to
    the built-in defaults.

    Args:
        path (Path): The ``.toml``, ``.yaml`` or ``.yml`` file to load.

    Returns:
        ChunkerConfig | None: The validated configuration, or None when it is unusable.
    """
    logger.debug("config_loading", path=str(path))
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"Failed to read config file: {e}", file=sys.stderr)
        logger.warning("config_unreadable", path=str(path), error=str(e))
        return None

    try:
        data = parse_config_text(text, yaml_format=path.suffix.lower() in {".yaml", ".yml"})
    except (TOMLKitError, yaml.YAMLError, ValueError) as e:
        print(f"Failed to parse config file: {e}", file=sys.stderr)
        logger.warning("config_unparsable", path=str(path), error=str(e))
        return None

    unknown = sorted(set(data) - set(ChunkerConfig.model_fields))
    if unknown:
        logger.debug("config_keys_ignored", path=str(path), keys=unknown)

    try:
        config = ChunkerConfig.model_validate(data)
    except ValidationError as e:
        report_config_errors(path, _shape_errors(e))
        return None

    errors = validate_config(config)
    if errors:
        report_config_errors(path, errors)
        return None

    logger.debug("config_loaded", path=str(path))
    return config
