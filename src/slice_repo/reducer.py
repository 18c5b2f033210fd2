"""Heuristic, size-bounded content reduction.

Nothing here parses source code. Comment stripping in particular does not
track string literals, so a comment marker inside a string (``"http://x"``
with unbalanced quotes before it, ``"/* not a comment */"``) can be taken for
a real comment and the rest of the line dropped.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from slice_repo.config import FileCategory, FileEntry, is_code_category

if TYPE_CHECKING:
    from collections.abc import Sequence

DEFAULT_MAX_FILE_LINES = 200

_HASH_COMMENT_CATEGORIES = frozenset({FileCategory.PYTHON, FileCategory.RUBY})

_SIGNATURE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^(export\s+)?(default\s+)?(abstract\s+)?(interface|type|class|enum|function|const|let|var)\s+\w+"),
    re.compile(r"^(export\s+)?(async\s+)?function\*?\s+\w+"),
    re.compile(r"^\s*(public|private|protected|static)?\s*(async\s+)?\w+\s*\([^)]*\)"),
    re.compile(r"^(async\s+)?def\s+\w+"),
    re.compile(r"^class\s+\w+"),
    re.compile(r"^(pub(\([\w:]+\))?\s+)?(async\s+)?(fn|struct|enum|trait|impl|mod|type)\b"),
    re.compile(r"^func\s+"),
    re.compile(r"^(package|namespace|module)\s+\w"),
)

_IMPORT_PREFIXES = ("import ", "import(", "from ", "#include", "use ", "require ")
_EXPORT_PREFIXES = ("export ", "pub ", "module.exports")
_TYPE_PREFIXES = ("interface ", "type ", "class ", "struct ", "enum ", "abstract class ", "data class ")
_FUNCTION_DECLARATION = re.compile(
    r"^(export\s+)?(async\s+)?function\s+\w+"
    r"|^(async\s+)?def\s+\w+"
    r"|^(pub(\([\w:]+\))?\s+)?(async\s+)?fn\s+\w+"
    r"|^func\s+",
)


class ReduceOptions(BaseModel):
    """Settings for the content reducer."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    remove_comments: bool = Field(default=True, description="Strip line and block comments from code.")
    minify_whitespace: bool = Field(default=True, description="Collapse consecutive blank lines.")
    signatures_only: bool = Field(default=False, description="Keep only declaration-like lines of code.")
    max_file_lines: int = Field(default=DEFAULT_MAX_FILE_LINES, ge=1, description="Line budget per file.")
    preserve_imports: bool = Field(default=True, description="Import lines are important.")
    preserve_exports: bool = Field(default=True, description="Export lines are important.")
    preserve_types: bool = Field(default=True, description="Type/interface declarations are important.")
    preserve_function_signatures: bool = Field(
        default=True,
        description="Function declarations are important.",
    )


class ReduceResult(BaseModel):
    """Reduced files plus aggregate size figures."""

    files: list[FileEntry] = Field(default_factory=list)
    original_size: int = Field(default=0, ge=0, description="Bytes before reduction")
    reduced_size: int = Field(default=0, ge=0, description="Bytes after reduction")
    compression_ratio: float = Field(default=0.0, ge=0.0, le=100.0, description="Percentage saved")
    files_processed: int = Field(default=0, ge=0)


def _comment_syntax(category: FileCategory) -> tuple[tuple[str, ...], bool]:
    """Return the line-comment markers and whether ``/* */`` blocks apply."""
    if category in _HASH_COMMENT_CATEGORIES:
        return ("#",), False
    if category == FileCategory.PHP:
        return ("//", "#"), True
    return ("//",), True


def _strip_inline(line: str, marker: str) -> str:
    idx = line.find(marker)
    if idx > 0:
        before = line[:idx]
        quotes = before.count('"') + before.count("'")
        if quotes % 2 == 0:
            return before.rstrip()
    return line


def _strip_blocks(line: str, in_block: bool) -> tuple[str, bool]:
    if in_block:
        end = line.find("*/")
        if end == -1:
            return "", True
        line = line[end + 2 :]
    start = line.find("/*")
    while start != -1:
        end = line.find("*/", start + 2)
        if end == -1:
            return line[:start].rstrip(), True
        line = line[:start] + line[end + 2 :]
        start = line.find("/*")
    return line, False


def strip_comments(content: str, category: FileCategory = FileCategory.TYPESCRIPT) -> str:
    """Remove whole-line, inline and block comments (best-effort).

    Args:
        content (str): the source text
        category (FileCategory): decides which comment markers apply

    Returns:
        str: the text without comment lines; lines that only held a comment are dropped
    """
    markers, blocks = _comment_syntax(category)
    result: list[str] = []
    in_block = False
    for line in content.split("\n"):
        was_blank = not line.strip()
        if blocks:
            line, in_block = _strip_blocks(line, in_block)  # noqa: PLW2901
        trimmed = line.strip()
        if not trimmed:
            if was_blank:
                result.append(line)
            continue
        if trimmed.startswith(markers):
            continue
        for marker in markers:
            line = _strip_inline(line, marker)  # noqa: PLW2901
        result.append(line)
    return "\n".join(result)


def collapse_blank_lines(content: str) -> str:
    """Trim trailing whitespace and collapse runs of blank lines into one."""
    out: list[str] = []
    for line in content.split("\n"):
        stripped = line.rstrip()
        if not stripped and out and not out[-1]:
            continue
        out.append(stripped)
    return "\n".join(out)


def _is_signature(trimmed: str) -> bool:
    if trimmed.startswith(_IMPORT_PREFIXES) or trimmed.startswith(_EXPORT_PREFIXES):
        return True
    return any(p.match(trimmed) for p in _SIGNATURE_PATTERNS)


def extract_signatures(content: str) -> str:
    """Keep only import, export and declaration-like lines."""
    return "\n".join(line for line in content.split("\n") if _is_signature(line.strip()))


def limit_lines(content: str, max_lines: int) -> str:
    """Keep the first `max_lines` lines and note how many were dropped."""
    lines = content.split("\n")
    if len(lines) <= max_lines:
        return content
    return "\n".join(lines[:max_lines]) + f"\n... ({len(lines) - max_lines} more lines)"


def _is_important(trimmed: str, options: ReduceOptions) -> bool:
    return (
        (options.preserve_imports and trimmed.startswith(_IMPORT_PREFIXES))
        or (options.preserve_exports and trimmed.startswith(_EXPORT_PREFIXES))
        or (options.preserve_types and trimmed.startswith(_TYPE_PREFIXES))
        or (options.preserve_function_signatures and _FUNCTION_DECLARATION.match(trimmed) is not None)
    )


def budgeted_limit(
    content: str,
    max_lines: int,
    options: ReduceOptions,
    category: FileCategory = FileCategory.TYPESCRIPT,
) -> str:
    """Trim code to a line budget, keeping structural lines first.

    Every important line (import, export, type, function declaration) is kept
    together with the line after it; the rest of the budget is filled from the
    top of the file. Gaps are marked with an elision comment, and a trailing
    comment counts the lines left after the last kept one.

    Args:
        content (str): the source text
        max_lines (int): line budget
        options (ReduceOptions): which line kinds count as important
        category (FileCategory): decides the comment token of the markers

    Returns:
        str: the reduced text
    """
    lines = content.split("\n")
    if len(lines) <= max_lines:
        return content

    important: set[int] = set()
    for i, line in enumerate(lines):
        if _is_important(line.strip(), options):
            important.add(i)
            if i + 1 < len(lines):
                important.add(i + 1)

    idx = 0
    while len(important) < max_lines and idx < len(lines):
        important.add(idx)
        idx += 1

    token = "#" if category in _HASH_COMMENT_CATEGORIES else "//"
    result: list[str] = []
    last = -1
    for i in sorted(important):
        if i > last + 1:
            result.append(f"  {token} ...")
        result.append(lines[i])
        last = i
    if last < len(lines) - 1:
        result.append(f"  {token} ... ({len(lines) - last - 1} more lines)")
    return "\n".join(result)


def reduce_content(content: str, category: FileCategory, options: ReduceOptions) -> str:
    """Apply the category-appropriate reduction to one file's content."""
    if not is_code_category(category):
        return limit_lines(content, options.max_file_lines)
    if options.signatures_only:
        return extract_signatures(content)
    if options.remove_comments:
        content = strip_comments(content, category)
    if options.minify_whitespace:
        content = collapse_blank_lines(content)
    return budgeted_limit(content, options.max_file_lines, options, category)


def reduce_files(files: Sequence[FileEntry], options: ReduceOptions | None = None) -> ReduceResult:
    """Reduce every file independently and report the aggregate savings.

    A file whose reduction would come out larger than its input keeps its
    original content, so the ratio stays within [0, 100].

    Args:
        files (Sequence[FileEntry]): the files to reduce
        options (ReduceOptions | None): reducer settings (defaults when None)

    Returns:
        ReduceResult: new file entries plus before/after byte sizes
    """
    opts = options or ReduceOptions()
    reduced: list[FileEntry] = []
    original_size = 0
    reduced_size = 0
    for entry in files:
        before = len(entry.content.encode("utf-8"))
        content = reduce_content(entry.content, entry.category, opts)
        after = len(content.encode("utf-8"))
        if after > before:
            content, after = entry.content, before
        original_size += before
        reduced_size += after
        reduced.append(entry.model_copy(update={"content": content, "size_bytes": after}))

    ratio = (1 - reduced_size / original_size) * 100 if original_size > 0 else 0.0
    return ReduceResult(
        files=reduced,
        original_size=original_size,
        reduced_size=reduced_size,
        compression_ratio=min(100.0, max(0.0, ratio)),
        files_processed=len(reduced),
    )
