from __future__ import annotations

import os
import stat
from pathlib import Path
from typing import TYPE_CHECKING

from slice_repo.config import FileEntry, ReadResult, SkipReason, SkipRecord, guess_category
from slice_repo.exceptions import PathNotADirectoryError, PathNotFoundError
from slice_repo.filters import is_junk_directory, is_junk_file, matches_exclusion
from slice_repo.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence

DEFAULT_MAX_FILE_SIZE = 64 * 1024
DEFAULT_MAX_DEPTH = 6


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def validate_paths(paths: Sequence[str | Path]) -> list[Path]:
    """Resolve root paths and check that each one is an existing directory.

    Args:
        paths (Sequence[str | Path]): the root paths to validate

    Raises:
        PathNotFoundError: if a path does not exist
        PathNotADirectoryError: if a path exists but is not a directory

    Returns:
        list[Path]: the absolute paths, in input order
    """
    validated: list[Path] = []
    for p in paths:
        resolved = Path(p).expanduser().resolve()
        if not resolved.exists():
            raise PathNotFoundError(path=str(p), resolved=resolved)
        if not resolved.is_dir():
            raise PathNotADirectoryError(path=str(p), resolved=resolved)
        validated.append(resolved)
    return validated


def _sort_key(name: str) -> tuple[str, str]:
    return (name.lower(), name)


def read_file_text(path: Path) -> str:
    """Read a file as strict UTF-8 text, keeping line endings untouched.

    Args:
        path (Path): the file path to read

    Raises:
        OSError: if the file cannot be read
        UnicodeDecodeError: if the file is not valid UTF-8

    Returns:
        str: the file content
    """
    return path.read_bytes().decode("utf-8")


def read_files(
    roots: Sequence[Path],
    *,
    patterns: Sequence[str] = (),
    extra_exclude_dirs: Sequence[str] = (),
    max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    max_depth: int = DEFAULT_MAX_DEPTH,
    allow_test_artifacts: bool = False,
) -> ReadResult:
    """Walk every root and read the files that survive all exclusion layers.

    Directories are pruned when the pre-filter flags them (recorded as
    ``pre-filtered``) or when a pattern matches their relative path (recorded
    as ``ai-excluded``). Files are skipped when the pre-filter flags their name,
    when they exceed `max_file_size`, when a pattern matches, or when they
    cannot be stat-ed or decoded; each skip is recorded and the walk goes on.
    Unreadable directories are silently left out.

    Entries nested deeper than `max_depth` levels below a root are not visited
    (direct children of a root are level 1).

    Args:
        roots (Sequence[Path]): validated root directories
        patterns (Sequence[str]): manual plus relevance-supplied exclusion patterns
        extra_exclude_dirs (Sequence[str]): extra directory names to pre-filter
        max_file_size (int): maximum file size in bytes
        max_depth (int): maximum nesting level
        allow_test_artifacts (bool): keep test files and test directories

    Returns:
        ReadResult: surviving files in walk order, plus skip records
    """
    files: list[FileEntry] = []
    skipped: list[SkipRecord] = []

    for root in roots:
        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            rel_dir = relpath(current, root)
            level = 1 if current == root else len(Path(rel_dir).parts) + 1
            if level > max_depth:
                dirnames[:] = []
                continue

            kept_dirs: list[str] = []
            for name in sorted(dirnames, key=_sort_key):
                rel = relpath(current / name, root)
                if is_junk_directory(name, extra_exclude_dirs, allow_test_artifacts=allow_test_artifacts):
                    skipped.append(SkipRecord(path=rel, reason=SkipReason.PRE_FILTERED))
                    continue
                if matches_exclusion(rel, patterns):
                    skipped.append(SkipRecord(path=rel, reason=SkipReason.AI_EXCLUDED))
                    continue
                kept_dirs.append(name)
            dirnames[:] = kept_dirs

            for name in sorted(filenames, key=_sort_key):
                full = current / name
                rel = relpath(full, root)
                entry = _read_entry(
                    full,
                    rel,
                    patterns=patterns,
                    max_file_size=max_file_size,
                    allow_test_artifacts=allow_test_artifacts,
                    skipped=skipped,
                )
                if entry is not None:
                    files.append(entry)

    result = ReadResult(files=files, skipped=skipped)
    logger.debug("read.done", files=result.total_files, bytes=result.total_size, skipped=len(skipped))
    return result


def _read_entry(
    full: Path,
    rel: str,
    *,
    patterns: Sequence[str],
    max_file_size: int,
    allow_test_artifacts: bool,
    skipped: list[SkipRecord],
) -> FileEntry | None:
    try:
        st = full.stat()
    except OSError:
        skipped.append(SkipRecord(path=rel, reason=SkipReason.STAT_ERROR))
        return None
    if not stat.S_ISREG(st.st_mode):
        return None

    if is_junk_file(full.name, allow_test_artifacts=allow_test_artifacts):
        skipped.append(SkipRecord(path=rel, reason=SkipReason.PRE_FILTERED))
        return None
    if st.st_size > max_file_size:
        skipped.append(SkipRecord(path=rel, reason=SkipReason.SIZE_EXCEEDED))
        return None
    if matches_exclusion(rel, patterns):
        skipped.append(SkipRecord(path=rel, reason=SkipReason.AI_EXCLUDED))
        return None

    try:
        content = read_file_text(full)
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("read.failed", path=rel, error=str(e))
        skipped.append(SkipRecord(path=rel, reason=SkipReason.READ_ERROR))
        return None

    return FileEntry(
        relative_path=rel,
        absolute_path=full,
        content=content,
        size_bytes=len(content.encode("utf-8")),
        category=guess_category(full),
    )
