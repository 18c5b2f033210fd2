"""Two exclusion layers applied to every filesystem entry.

1. A static pre-filter for obvious junk (VCS metadata, dependency caches,
   binaries, lock files, test artifacts). Junk never reaches the tree shown to
   the relevance judgment, nor the read.
2. A pattern matcher for caller-supplied and relevance-supplied exclusion
   patterns, which are either plain names ("dist", ".env") or trailing
   extension globs ("*.lock", "*.min.js").
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

JUNK_DIRS: frozenset[str] = frozenset(
    {
        "node_modules",
        ".git",
        ".svn",
        ".hg",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".ruff_cache",
        ".tox",
        ".npm",
        ".yarn",
        ".pnpm-store",
        ".cache",
        ".parcel-cache",
        ".turbo",
        ".sass-cache",
        "bower_components",
        "Pods",
        ".gradle",
        ".terraform",
    },
)

BINARY_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".svg", ".webp", ".avif",
        ".mp3", ".mp4", ".avi", ".mov", ".wmv", ".flv", ".webm", ".ogg", ".wav",
        ".zip", ".tar", ".gz", ".bz2", ".7z", ".rar", ".xz",
        ".exe", ".dll", ".so", ".dylib", ".bin", ".msi",
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
        ".woff", ".woff2", ".ttf", ".eot", ".otf",
        ".pyc", ".pyo", ".class", ".o", ".obj",
        ".map",
    },
)  # fmt: skip

# OS noise and secrets
NOISE_FILES: frozenset[str] = frozenset({".ds_store", ".dev.vars", "thumbs.db", "desktop.ini"})

LOCK_FILES: frozenset[str] = frozenset(
    {
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
        "bun.lock",
        "bun.lockb",
        "composer.lock",
        "gemfile.lock",
        "cargo.lock",
        "poetry.lock",
    },
)

TEST_DIR_NAMES: frozenset[str] = frozenset({"__tests__", "__mocks__", "__snapshots__", "__fixtures__"})

TEST_FILE_SUFFIXES: tuple[str, ...] = (
    # JS/TS
    ".test.ts", ".test.tsx", ".test.js", ".test.jsx", ".test.mjs", ".test.cjs",
    ".spec.ts", ".spec.tsx", ".spec.js", ".spec.jsx", ".spec.mjs", ".spec.cjs",
    # Python, Go, Ruby, C/C++, Rust
    "_test.py",
    "_test.go",
    "_test.rb", "_spec.rb",
    "_test.cpp", "_test.cc", "_test.cxx", "_test.c",
    "_test.rs",
)  # fmt: skip

TEST_FILE_PREFIXES: tuple[str, ...] = ("test_",)

_SEGMENT_SPLIT = re.compile(r"[/\\]")


def is_test_file(name: str) -> bool:
    """Check whether a file name follows a known test-file naming convention.

    Args:
        name (str): the file name (not a path)

    Returns:
        bool: True if the name ends with a test suffix or starts with a test prefix
    """
    lower = name.lower()
    return lower.endswith(TEST_FILE_SUFFIXES) or lower.startswith(TEST_FILE_PREFIXES)


def is_test_directory(name: str) -> bool:
    """Check whether a directory name is a recognized test directory."""
    return name in TEST_DIR_NAMES


def is_junk_directory(
    name: str,
    extra_names: Iterable[str] = (),
    *,
    allow_test_artifacts: bool = False,
) -> bool:
    """Should this directory be dropped before anything else looks at it?

    Args:
        name (str): the directory name
        extra_names (Iterable[str]): caller-supplied directory names to drop as well
            (compared case-insensitively)
        allow_test_artifacts (bool): keep recognized test directories

    Returns:
        bool: True if the directory is junk
    """
    if name in JUNK_DIRS:
        return True
    lower = name.lower()
    if any(e.lower() == lower for e in extra_names):
        return True
    return not allow_test_artifacts and is_test_directory(name)


def is_junk_file(name: str, *, allow_test_artifacts: bool = False) -> bool:
    """Should this file be dropped by name alone (no size check)?

    Args:
        name (str): the file name
        allow_test_artifacts (bool): keep files following test naming conventions

    Returns:
        bool: True for OS noise, secrets, lock files, binary extensions and
            (unless allowed) test files
    """
    lower = name.lower()
    if lower in NOISE_FILES or lower in LOCK_FILES:
        return True
    dot = lower.rfind(".")
    if dot != -1 and lower[dot:] in BINARY_EXTENSIONS:
        return True
    return not allow_test_artifacts and is_test_file(lower)


def normalize_patterns(patterns: Iterable[str]) -> list[str]:
    """Strip whitespace from exclusion patterns and drop empty ones."""
    return [p.strip() for p in patterns if p and p.strip()]


def matches_exclusion(relative_path: str, patterns: Sequence[str]) -> bool:
    """Check a relative path against exclusion patterns.

    A pattern without glob markers matches when any path segment equals it
    (case-insensitive). A pattern starting with ``*.`` matches when the file
    name ends with its suffix (case-insensitive). Other glob shapes match
    nothing. A superset of patterns always excludes a superset of paths.

    Args:
        relative_path (str): the path to test, relative to its root
        patterns (Sequence[str]): exclusion patterns

    Returns:
        bool: True as soon as one pattern matches
    """
    parts = _SEGMENT_SPLIT.split(relative_path)
    lowered = [seg.lower() for seg in parts]
    file_name = lowered[-1]
    for pattern in patterns:
        p = pattern.strip().lower()
        if not p:
            continue
        if "*" not in p and "?" not in p:
            if p in lowered:
                return True
            continue
        if p.startswith("*.") and file_name.endswith(p[1:]):
            return True
    return False
