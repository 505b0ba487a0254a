from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RepoChunkerError(Exception):
    """Base exception for errors in the repo_chunker package."""


@dataclass(frozen=True)
class GitCommandError(RepoChunkerError):
    """Raised when a git command fails."""

    command: str
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        return f"`{self.command}` exited with {self.returncode}: {self.stderr.strip()}"


@dataclass(frozen=True)
class NotAGitRepositoryError(RepoChunkerError):
    """Raised when the specified directory is not a Git repository."""

    folder: Path
    message: str = "The specified directory is not a Git repository."


@dataclass(frozen=True)
class RootPathError(RepoChunkerError):
    """Raised when a root path to serialize cannot be canonicalized."""

    folder: Path
    message: str = "The root path does not exist or cannot be resolved."

    def __str__(self) -> str:
        return f"{self.message} ({self.folder})"


@dataclass(frozen=True)
class OutputDirectoryError(RepoChunkerError):
    """Raised when the output directory cannot be created."""

    folder: Path
    message: str = "Cannot create output directory."

    def __str__(self) -> str:
        return f"{self.message} ({self.folder})"


@dataclass(frozen=True)
class ChunkWriteError(RepoChunkerError):
    """Raised when a chunk cannot be written to its destination."""

    destination: str
    message: str = "Cannot write chunk."

    def __str__(self) -> str:
        return f"{self.message} ({self.destination})"
