from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from slice_repo.file_manipulation import DEFAULT_MAX_DEPTH, relpath
from slice_repo.filters import is_junk_directory, is_junk_file, matches_exclusion

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

DEFAULT_MAX_ITEMS = 1000

BRANCH = "├── "
LAST_BRANCH = "└── "
PIPE = "│   "
SPACE = "    "


def directory_size(path: Path) -> int:
    """Total size in bytes of every regular file below `path`; unreadable entries count as 0."""
    total = 0
    for dirpath, _dirnames, filenames in os.walk(path):
        for name in filenames:
            try:
                total += (Path(dirpath) / name).stat().st_size
            except OSError:
                continue
    return total


class _TreeWalker:
    """Walk one root, yielding rendered tree lines below it."""

    def __init__(
        self,
        root: Path,
        *,
        patterns: Sequence[str],
        extra_exclude_dirs: Sequence[str],
        allow_test_artifacts: bool,
        sort_by_size: bool,
    ) -> None:
        self.root = root
        self.patterns = patterns
        self.extra_exclude_dirs = extra_exclude_dirs
        self.allow_test_artifacts = allow_test_artifacts
        self.sort_by_size = sort_by_size
        self._sizes: dict[Path, int] = {}

    def _keep(self, entry: os.DirEntry[str], is_dir: bool) -> bool:
        if is_dir:
            if is_junk_directory(entry.name, self.extra_exclude_dirs, allow_test_artifacts=self.allow_test_artifacts):
                return False
        elif is_junk_file(entry.name, allow_test_artifacts=self.allow_test_artifacts):
            return False
        return not matches_exclusion(relpath(Path(entry.path), self.root), self.patterns)

    def _size(self, path: Path, is_dir: bool) -> int:
        if path not in self._sizes:
            if is_dir:
                self._sizes[path] = directory_size(path)
            else:
                try:
                    self._sizes[path] = path.stat().st_size
                except OSError:
                    self._sizes[path] = 0
        return self._sizes[path]

    def lines(self, directory: Path, depth: int, prefix: str = "") -> Iterator[str]:
        if depth <= 0:
            return
        try:
            with os.scandir(directory) as it:
                raw = list(it)
        except OSError:
            return

        entries: list[tuple[os.DirEntry[str], bool]] = []
        for entry in raw:
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                is_dir = False
            if self._keep(entry, is_dir):
                entries.append((entry, is_dir))

        if self.sort_by_size:
            entries.sort(key=lambda e: (-self._size(Path(e[0].path), e[1]), e[0].name.lower(), e[0].name))
        else:
            entries.sort(key=lambda e: (not e[1], e[0].name.lower(), e[0].name))

        for idx, (entry, is_dir) in enumerate(entries):
            last = idx == len(entries) - 1
            yield prefix + (LAST_BRANCH if last else BRANCH) + entry.name
            if is_dir:
                yield from self.lines(Path(entry.path), depth - 1, prefix + (SPACE if last else PIPE))


def render_tree(
    roots: Sequence[Path],
    *,
    patterns: Sequence[str] = (),
    extra_exclude_dirs: Sequence[str] = (),
    max_depth: int = DEFAULT_MAX_DEPTH,
    max_items: int = DEFAULT_MAX_ITEMS,
    allow_test_artifacts: bool = False,
    sort_by_size: bool = False,
) -> str:
    """Render a textual directory tree for one or more roots.

    Junk entries and entries matching `patterns` are left out. Entries are
    listed directories first, then by name, or by descending size when
    `sort_by_size` is set. Once `max_items` lines have been emitted across all
    roots, a truncation marker ends the output. Unreadable directories are
    rendered empty.

    Args:
        roots (Sequence[Path]): validated root directories
        patterns (Sequence[str]): exclusion patterns to hide
        extra_exclude_dirs (Sequence[str]): extra directory names to hide
        max_depth (int): nesting levels to show below each root
        max_items (int): maximum number of entry lines
        allow_test_artifacts (bool): show test files and test directories
        sort_by_size (bool): order entries by descending size

    Returns:
        str: the rendered tree, one root block per root
    """
    out: list[str] = []
    total = 0
    for root in roots:
        out.append(f"{root.name}/")
        walker = _TreeWalker(
            root,
            patterns=patterns,
            extra_exclude_dirs=extra_exclude_dirs,
            allow_test_artifacts=allow_test_artifacts,
            sort_by_size=sort_by_size,
        )
        for line in walker.lines(root, max_depth):
            out.append(line)
            total += 1
            if total >= max_items:
                out.append(f"... (truncated at {max_items} items)")
                return "\n".join(out)
        out.append("")
    return "\n".join(out)
