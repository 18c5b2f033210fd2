from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class SliceRepoError(Exception):
    """Base exception for errors in the slice_repo module."""

    def __str__(self) -> str:
        return getattr(self, "message", "") or self.__class__.__name__


@dataclass(frozen=True)
class PathNotFoundError(SliceRepoError):
    """Raised when a root path does not exist."""

    path: str
    resolved: Path
    message: str = ""

    def __str__(self) -> str:
        return self.message or f"Path does not exist: {self.path} (resolved to: {self.resolved})"


@dataclass(frozen=True)
class PathNotADirectoryError(SliceRepoError):
    """Raised when a root path exists but is not a directory."""

    path: str
    resolved: Path
    message: str = ""

    def __str__(self) -> str:
        return self.message or f"Path is not a directory: {self.path} (resolved to: {self.resolved})"


@dataclass(frozen=True)
class RelevanceResponseError(SliceRepoError):
    """Raised when a relevance response cannot be turned into exclusion patterns."""

    output: str
    reason: str

    def __str__(self) -> str:
        return f"Failed to parse relevance response: {self.reason}\nGot: {self.output}"


@dataclass(frozen=True)
class ConfigFileError(SliceRepoError):
    """Raised when a configuration file is missing, unreadable or invalid."""

    path: Path
    reason: str

    def __str__(self) -> str:
        return f"Invalid config file {self.path}: {self.reason}"
