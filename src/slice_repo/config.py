from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, computed_field


class FileCategory(StrEnum):
    """Categorization of file contents, derived from the file extension.

    The category decides the code fence language of a file in the markdown
    output, and whether the reducer applies code-aware heuristics to it or
    only limits its line count.
    """

    TYPESCRIPT = auto()
    JAVASCRIPT = auto()
    PYTHON = auto()
    RUST = auto()
    GO = auto()
    JAVA = auto()
    KOTLIN = auto()
    RUBY = auto()
    PHP = auto()
    CSHARP = auto()
    CPP = auto()
    C = auto()
    SWIFT = auto()
    BASH = auto()
    SQL = auto()
    HTML = auto()
    CSS = auto()
    SCSS = auto()
    SASS = auto()
    LESS = auto()
    JSON = auto()
    YAML = auto()
    TOML = auto()
    XML = auto()
    MARKDOWN = auto()
    GRAPHQL = auto()
    DOCKERFILE = auto()
    HCL = auto()
    PROTOBUF = auto()
    VUE = auto()
    SVELTE = auto()
    OTHER = auto()


EXT2CATEGORY: dict[str, FileCategory] = {
    ".bash": FileCategory.BASH,
    ".c": FileCategory.C,
    ".cc": FileCategory.CPP,
    ".cjs": FileCategory.JAVASCRIPT,
    ".cpp": FileCategory.CPP,
    ".cs": FileCategory.CSHARP,
    ".css": FileCategory.CSS,
    ".cxx": FileCategory.CPP,
    ".dockerfile": FileCategory.DOCKERFILE,
    ".go": FileCategory.GO,
    ".gql": FileCategory.GRAPHQL,
    ".graphql": FileCategory.GRAPHQL,
    ".h": FileCategory.C,
    ".hpp": FileCategory.CPP,
    ".htm": FileCategory.HTML,
    ".html": FileCategory.HTML,
    ".java": FileCategory.JAVA,
    ".js": FileCategory.JAVASCRIPT,
    ".json": FileCategory.JSON,
    ".jsx": FileCategory.JAVASCRIPT,
    ".kt": FileCategory.KOTLIN,
    ".less": FileCategory.LESS,
    ".md": FileCategory.MARKDOWN,
    ".mjs": FileCategory.JAVASCRIPT,
    ".php": FileCategory.PHP,
    ".proto": FileCategory.PROTOBUF,
    ".py": FileCategory.PYTHON,
    ".rb": FileCategory.RUBY,
    ".rs": FileCategory.RUST,
    ".sass": FileCategory.SASS,
    ".scss": FileCategory.SCSS,
    ".sh": FileCategory.BASH,
    ".sql": FileCategory.SQL,
    ".svelte": FileCategory.SVELTE,
    ".swift": FileCategory.SWIFT,
    ".tf": FileCategory.HCL,
    ".toml": FileCategory.TOML,
    ".ts": FileCategory.TYPESCRIPT,
    ".tsx": FileCategory.TYPESCRIPT,
    ".vue": FileCategory.VUE,
    ".xml": FileCategory.XML,
    ".yaml": FileCategory.YAML,
    ".yml": FileCategory.YAML,
    ".zsh": FileCategory.BASH,
}

_FENCE_LANGUAGE: dict[FileCategory, str] = {
    FileCategory.TYPESCRIPT: "typescript",
    FileCategory.JAVASCRIPT: "javascript",
    FileCategory.PYTHON: "python",
    FileCategory.RUST: "rust",
    FileCategory.GO: "go",
    FileCategory.JAVA: "java",
    FileCategory.KOTLIN: "kotlin",
    FileCategory.RUBY: "ruby",
    FileCategory.PHP: "php",
    FileCategory.CSHARP: "csharp",
    FileCategory.CPP: "cpp",
    FileCategory.C: "c",
    FileCategory.SWIFT: "swift",
    FileCategory.BASH: "bash",
    FileCategory.SQL: "sql",
    FileCategory.HTML: "html",
    FileCategory.CSS: "css",
    FileCategory.SCSS: "scss",
    FileCategory.SASS: "sass",
    FileCategory.LESS: "less",
    FileCategory.JSON: "json",
    FileCategory.YAML: "yaml",
    FileCategory.TOML: "toml",
    FileCategory.XML: "xml",
    FileCategory.MARKDOWN: "markdown",
    FileCategory.GRAPHQL: "graphql",
    FileCategory.DOCKERFILE: "dockerfile",
    FileCategory.HCL: "hcl",
    FileCategory.PROTOBUF: "protobuf",
    FileCategory.VUE: "vue",
    FileCategory.SVELTE: "svelte",
    FileCategory.OTHER: "",
}

CODE_CATEGORIES: frozenset[FileCategory] = frozenset(
    {
        FileCategory.TYPESCRIPT,
        FileCategory.JAVASCRIPT,
        FileCategory.PYTHON,
        FileCategory.JAVA,
        FileCategory.GO,
        FileCategory.RUST,
        FileCategory.CPP,
        FileCategory.C,
        FileCategory.CSHARP,
        FileCategory.KOTLIN,
        FileCategory.RUBY,
        FileCategory.PHP,
        FileCategory.SWIFT,
    },
)


def guess_category(path: Path | str) -> FileCategory:
    """Heuristic guess of the content category based on extension.

    Args:
        path (Path | str): The file path (or file name) to categorize.

    Returns:
        FileCategory: The guessed category, or FileCategory.OTHER if unknown.
    """
    p = Path(path)
    if p.name.lower() == "dockerfile":
        return FileCategory.DOCKERFILE
    return EXT2CATEGORY.get(p.suffix.lower(), FileCategory.OTHER)


def fence_language(category: FileCategory) -> str:
    """Get the code fence language for a given category ("" when none)."""
    return _FENCE_LANGUAGE.get(category, "")


def is_code_category(category: FileCategory) -> bool:
    """Whether the reducer should apply code-aware heuristics to this category."""
    return category in CODE_CATEGORIES


class SkipReason(StrEnum):
    """Why a path was left out of a read."""

    PRE_FILTERED = "pre-filtered"
    AI_EXCLUDED = "ai-excluded"
    SIZE_EXCEEDED = "size-exceeded"
    STAT_ERROR = "stat-error"
    READ_ERROR = "read-error"


class SkipRecord(BaseModel):
    """One entry of the audit trail of a read."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Path relative to the root it was found under")
    reason: SkipReason = Field(..., description="Why the path was skipped")


class FileEntry(BaseModel):
    """A file that survived every exclusion layer, with its text content.

    Attributes:
        relative_path: Path relative to the root being scanned (POSIX separators).
        absolute_path: Absolute path to the file on disk.
        content: File content; replaced by a reduced copy when compression runs.
        size_bytes: UTF-8 byte size of `content`.
        category: Content category derived from the extension.
    """

    model_config = ConfigDict(frozen=True)

    relative_path: str = Field(..., description="File path relative to its root")
    absolute_path: Path = Field(..., description="Absolute file path")
    content: str = Field(..., description="Text content")
    size_bytes: int = Field(..., ge=0, description="Content size in bytes")
    category: FileCategory = Field(default=FileCategory.OTHER, description="Content category")

    @computed_field
    @property
    def language(self) -> str:
        """Get the code fence language based on the category."""
        return fence_language(self.category)

    @computed_field
    @property
    def is_code(self) -> bool:
        """Whether code-aware reduction applies to this file."""
        return is_code_category(self.category)


class ReadResult(BaseModel):
    """Surviving files plus the skip audit trail of one read."""

    files: list[FileEntry] = Field(default_factory=list)
    skipped: list[SkipRecord] = Field(default_factory=list)

    @computed_field
    @property
    def total_files(self) -> int:
        """Number of files read."""
        return len(self.files)

    @computed_field
    @property
    def total_size(self) -> int:
        """Total bytes of content read."""
        return sum(f.size_bytes for f in self.files)
