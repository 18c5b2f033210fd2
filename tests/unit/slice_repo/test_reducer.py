from pathlib import Path

import pytest
from pydantic import ValidationError

from slice_repo.config import FileCategory, FileEntry
from slice_repo.reducer import (
    ReduceOptions,
    budgeted_limit,
    collapse_blank_lines,
    extract_signatures,
    limit_lines,
    reduce_content,
    reduce_files,
    strip_comments,
)


def _entry(name: str, content: str, category: FileCategory) -> FileEntry:
    return FileEntry(
        relative_path=name,
        absolute_path=Path("/repo") / name,
        content=content,
        size_bytes=len(content.encode("utf-8")),
        category=category,
    )


@pytest.mark.unit
def test_strip_comments_python() -> None:
    source = "import os  # needed\n# full line\nx = 1\n"

    assert strip_comments(source, FileCategory.PYTHON) == "import os\nx = 1\n"


@pytest.mark.unit
def test_strip_comments_c_family_blocks_and_lines() -> None:
    source = "const a = 1; // note\n/* block\n still */\nconst b = 2;\n"

    assert strip_comments(source, FileCategory.TYPESCRIPT) == "const a = 1;\nconst b = 2;\n"


@pytest.mark.unit
def test_strip_comments_keeps_marker_after_unbalanced_quote() -> None:
    source = 'const url = "http://example.com";\n'

    assert strip_comments(source, FileCategory.JAVASCRIPT) == source


@pytest.mark.unit
def test_strip_comments_hash_is_not_a_comment_in_c_family() -> None:
    source = "#include <stdio.h>\nint x; // y\n"

    assert strip_comments(source, FileCategory.C) == "#include <stdio.h>\nint x;\n"


@pytest.mark.unit
def test_collapse_blank_lines() -> None:
    assert collapse_blank_lines("a\n\n\n\nb  \n") == "a\n\nb\n"


@pytest.mark.unit
def test_limit_lines() -> None:
    assert limit_lines("1\n2\n3\n4", 2) == "1\n2\n... (2 more lines)"
    assert limit_lines("1\n2", 2) == "1\n2"


@pytest.mark.unit
def test_extract_signatures_python() -> None:
    source = "import os\n\ndef foo(x):\n    return x\n\nclass A:\n    pass\n"

    assert extract_signatures(source) == "import os\ndef foo(x):\nclass A:"


@pytest.mark.unit
def test_budgeted_limit_keeps_top_when_only_imports_matter() -> None:
    lines = ["import a"] + [f"x = {i}" for i in range(1, 10)]

    reduced = budgeted_limit("\n".join(lines), 3, ReduceOptions(), FileCategory.PYTHON)

    assert reduced == "import a\nx = 1\nx = 2\n  # ... (7 more lines)"


@pytest.mark.unit
def test_budgeted_limit_marks_gaps_around_important_lines() -> None:
    lines = [f"let v{i} = {i};" for i in range(7)] + ["function foo() {", "  return 1;", "}"]

    reduced = budgeted_limit("\n".join(lines), 4, ReduceOptions(), FileCategory.TYPESCRIPT)

    assert reduced.split("\n") == [
        "let v0 = 0;",
        "let v1 = 1;",
        "  // ...",
        "function foo() {",
        "  return 1;",
        "  // ... (1 more lines)",
    ]


@pytest.mark.unit
def test_budgeted_limit_preserve_toggles() -> None:
    lines = [f"let v{i} = {i};" for i in range(7)] + ["function foo() {", "  return 1;", "}"]
    options = ReduceOptions(preserve_function_signatures=False)

    reduced = budgeted_limit("\n".join(lines), 4, options, FileCategory.TYPESCRIPT)

    assert reduced.split("\n") == [*lines[:4], "  // ... (6 more lines)"]


@pytest.mark.unit
def test_reduce_content_non_code_only_limits_lines() -> None:
    content = "# Title\n\n\n\n<!-- c -->\n" + "\n".join(f"line {i}" for i in range(10))
    options = ReduceOptions(max_file_lines=3)

    assert reduce_content(content, FileCategory.MARKDOWN, options) == "# Title\n\n\n... (12 more lines)"


@pytest.mark.unit
def test_reduce_content_signatures_only() -> None:
    content = "import os\nx = 1\ndef f():\n    return x\n"
    options = ReduceOptions(signatures_only=True)

    assert reduce_content(content, FileCategory.PYTHON, options) == "import os\ndef f():"


@pytest.mark.unit
def test_reduce_files_reports_sizes_and_ratio() -> None:
    code = "// header\n// header\n// header\nconst a = 1;\n\n\n\nconst b = 2;\n"
    files = [_entry("a.ts", code, FileCategory.TYPESCRIPT)]

    result = reduce_files(files)

    assert result.files[0].content == "const a = 1;\n\nconst b = 2;\n"
    assert result.files[0].size_bytes == len(result.files[0].content)
    assert result.original_size == len(code)
    assert result.reduced_size == len(result.files[0].content)
    assert 0 < result.compression_ratio < 100
    assert result.files_processed == 1
    # input entries are left untouched
    assert files[0].content == code


@pytest.mark.unit
def test_reduce_files_never_grows_a_file() -> None:
    files = [_entry("notes.md", "a\nb", FileCategory.MARKDOWN)]

    result = reduce_files(files, ReduceOptions(max_file_lines=1))

    assert result.files[0].content == "a\nb"
    assert result.compression_ratio == 0.0


@pytest.mark.unit
def test_reduce_files_empty_input() -> None:
    result = reduce_files([])

    assert result.files == []
    assert result.compression_ratio == 0.0
    assert result.original_size == 0


@pytest.mark.unit
def test_reduce_options_reject_unknown_keys() -> None:
    with pytest.raises(ValidationError):
        ReduceOptions(remove_whitespace=True)
