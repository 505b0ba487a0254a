from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

BASELINE_PRIORITY = 40
IGNORED_PRIORITY = -1
RECENT_COMMIT_BONUS = 50
RECENT_WINDOW_SECONDS = 14 * 24 * 60 * 60
MIN_PRIORITY_SCORE = 0
MAX_PRIORITY_SCORE = 1000
TEXT_SNIFF_BYTES = 4096

CONFIG_FILE_NAMES = ("repo_chunker.toml", "repo_chunker.yaml", "repo_chunker.yml")

DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    r"^\.git/",
    r"^\.next/",
    r"^node_modules/",
    r"^vendor/",
    r"^dist/",
    r"^build/",
    r"^out/",
    r"^target/",
    r"^bin/",
    r"^obj/",
    r"^\.idea/",
    r"^\.vscode/",
    r"^\.vs/",
    r"^\.settings/",
    r"^\.gradle/",
    r"^\.mvn/",
    r"^\.pytest_cache/",
    r"^__pycache__/",
    r"^\.sass-cache/",
    r"^\.vercel/",
    r"^\.turbo/",
    r"^coverage/",
    r"^test-results/",
    r"\.gitignore",
    r"pnpm-lock\.yaml",
    r"repo_chunker\.(toml|ya?ml)",
    r"package-lock\.json",
    r"yarn\.lock",
    r"Cargo\.lock",
    r"Gemfile\.lock",
    r"composer\.lock",
    r"mix\.lock",
    r"poetry\.lock",
    r"Pipfile\.lock",
    r"packages\.lock\.json",
    r"paket\.lock",
    r"\.pyc$",
    r"\.pyo$",
    r"\.pyd$",
    r"\.class$",
    r"\.o$",
    r"\.obj$",
    r"\.dll$",
    r"\.exe$",
    r"\.so$",
    r"\.dylib$",
    r"\.log$",
    r"\.tmp$",
    r"\.temp$",
    r"\.swp$",
    r"\.swo$",
    r"\.DS_Store$",
    r"Thumbs\.db$",
    r"\.env(\..+)?$",
    r"\.bak$",
    r"~$",
)

DEFAULT_PRIORITY_RULES: dict[int, tuple[str, ...]] = {
    50: (r"^src/",),
}

BINARY_FILE_EXTENSIONS: frozenset[str] = frozenset({
    ".3ds", ".7z", ".a", ".aac", ".ai", ".apk", ".bin", ".blend", ".bmp", ".bpl",
    ".bz2", ".cab", ".class", ".com", ".cpl", ".crt", ".dat", ".der", ".dll", ".dmg",
    ".drv", ".efi", ".elf", ".eot", ".eps", ".exe", ".fbx", ".flac", ".gbr", ".gho",
    ".gif", ".gz", ".icns", ".ico", ".img", ".img3", ".img4", ".iso", ".jar", ".jp2",
    ".jpeg", ".jpg", ".key", ".lib", ".max", ".mid", ".midi", ".mo", ".mov", ".mp3",
    ".mp4", ".msi", ".mso", ".nib", ".o", ".obj", ".ocx", ".ovl", ".p12", ".p7b",
    ".pak", ".pcb", ".pdf", ".pem", ".png", ".png2", ".psd", ".psf", ".rar", ".raw",
    ".rco", ".rom", ".scr", ".so", ".swc", ".sys", ".tar", ".tgz", ".tif", ".tiff",
    ".ttf", ".vhd", ".vhdx", ".wav", ".webm", ".webp", ".woff", ".woff2", ".xap",
    ".xdf", ".xz", ".zip",
})  # fmt: skip


class PriorityRule(BaseModel):
    """A user priority rule: files matching any of `patterns` get `score`."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    score: int
    patterns: list[str] = Field(default_factory=list)


class ChunkerConfig(BaseModel):
    """Optional user configuration, loaded from `repo_chunker.toml` or `repo_chunker.yaml`.

    Every field is optional and merged with the built-in defaults.

    Attributes:
        ignore_patterns: Regular expressions (over repository-relative paths) appended to
            the default ignore list. Accepts either a list or a `{patterns = [...]}` table.
        priority_rules: Priority tiers merged into the default tiers by score.
        binary_extensions: Extra file extensions treated as binary.
        output_dir: Directory that receives chunk files when no directory is given on the
            command line.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    ignore_patterns: list[str] = Field(default_factory=list)
    priority_rules: list[PriorityRule] = Field(default_factory=list)
    binary_extensions: list[str] = Field(default_factory=list)
    output_dir: str | None = None

    @field_validator("ignore_patterns", mode="before")
    @classmethod
    def _unwrap_ignore_table(cls, value: Any) -> Any:  # noqa: ANN401
        if isinstance(value, dict):
            return value.get("patterns", [])
        if value is None:
            return []
        return value


@dataclass(frozen=True)
class ConfigError:
    """A single validation problem found in a user configuration."""

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


@dataclass(frozen=True)
class PriorityTier:
    score: int
    patterns: tuple[re.Pattern[str], ...]

    def matches(self, rel: str) -> bool:
        return any(pat.search(rel) for pat in self.patterns)


@dataclass(frozen=True)
class RuleSet:
    """Resolved ignore and priority rules for one run.

    `priority_tiers` is always ordered from the highest score to the lowest.
    """

    ignore_patterns: tuple[re.Pattern[str], ...]
    priority_tiers: tuple[PriorityTier, ...]
    binary_extensions: frozenset[str]


def compile_patterns(patterns: list[str] | tuple[str, ...]) -> list[re.Pattern[str]]:
    """Compile regular expressions, silently dropping the invalid ones.

    Args:
        patterns: raw regular expressions

    Returns:
        list[re.Pattern[str]]: the compiled patterns, in input order
    """
    compiled: list[re.Pattern[str]] = []
    for pat in patterns:
        try:
            compiled.append(re.compile(pat))
        except re.error:
            continue
    return compiled


def normalize_extension(ext: str) -> str:
    """Lowercase `ext` and make sure it starts with a dot."""
    ext = ext.strip().lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return ext


def build_rule_set(config: ChunkerConfig | None = None) -> RuleSet:
    """Merge the built-in ignore and priority rules with a user configuration.

    User ignore patterns are appended to the defaults (invalid ones are skipped).
    A user priority rule whose score already exists extends that tier, otherwise a
    new tier is added. Tiers are finally sorted by descending score.

    Args:
        config: the user configuration, or None to use the defaults only

    Returns:
        RuleSet: the resolved rules
    """
    ignore = compile_patterns(DEFAULT_IGNORE_PATTERNS)
    tiers: dict[int, list[re.Pattern[str]]] = {
        score: compile_patterns(pats) for score, pats in DEFAULT_PRIORITY_RULES.items()
    }
    binary_extensions = set(BINARY_FILE_EXTENSIONS)

    if config is not None:
        ignore.extend(compile_patterns(config.ignore_patterns))
        for rule in config.priority_rules:
            if not rule.patterns:
                continue
            tiers.setdefault(rule.score, []).extend(compile_patterns(rule.patterns))
        binary_extensions.update(normalize_extension(ext) for ext in config.binary_extensions if ext.strip())

    ordered = sorted(tiers.items(), key=lambda item: item[0], reverse=True)
    return RuleSet(
        ignore_patterns=tuple(ignore),
        priority_tiers=tuple(PriorityTier(score=score, patterns=tuple(pats)) for score, pats in ordered),
        binary_extensions=frozenset(binary_extensions),
    )


def _regex_errors(field: str, patterns: list[str]) -> list[ConfigError]:
    errors: list[ConfigError] = []
    for pattern in patterns:
        try:
            re.compile(pattern)
        except re.error as e:
            errors.append(ConfigError(field=field, message=f"Invalid regex pattern '{pattern}': {e}"))
    return errors


def validate_config(config: ChunkerConfig) -> list[ConfigError]:
    """Check a user configuration and return every problem found.

    Checks that all regular expressions compile, that priority scores are within
    [0, 1000], and that `output_dir` is a directory or can be created.

    Args:
        config: the configuration to check

    Returns:
        list[ConfigError]: the problems found; empty when the configuration is usable
    """
    errors = _regex_errors("ignore_patterns", config.ignore_patterns)

    for rule in config.priority_rules:
        if not MIN_PRIORITY_SCORE <= rule.score <= MAX_PRIORITY_SCORE:
            errors.append(
                ConfigError(
                    field="priority_rules",
                    message=(
                        f"Priority score {rule.score} must be between {MIN_PRIORITY_SCORE} and {MAX_PRIORITY_SCORE}"
                    ),
                ),
            )
        errors.extend(_regex_errors("priority_rules", rule.patterns))

    if config.output_dir:
        path = Path(config.output_dir)
        if path.exists() and not path.is_dir():
            errors.append(
                ConfigError(
                    field="output_dir",
                    message=f"Output path '{config.output_dir}' exists but is not a directory",
                ),
            )
        elif not path.exists():
            try:
                path.mkdir(parents=True)
            except OSError as e:
                errors.append(
                    ConfigError(
                        field="output_dir",
                        message=f"Cannot create output directory '{config.output_dir}': {e}",
                    ),
                )
            else:
                path.rmdir()

    return errors
