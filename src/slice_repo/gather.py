"""Context gathering pipeline.

1. Render the tree with the pre-filter and the manual exclusion patterns.
2. Hand that tree to the relevance judgment, which returns extra patterns.
3. Render the tree again with every pattern: this is the tree of the result.
4. Read the files that survive every exclusion layer.
5. Optionally reduce their content.
6. Assemble the markdown document.

The relevance judgment is injected as a coroutine function, so the pipeline
runs against deterministic stand-ins in tests. Errors it raises propagate.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from slice_repo.config import SkipRecord  # noqa: TC001
from slice_repo.file_manipulation import DEFAULT_MAX_DEPTH, DEFAULT_MAX_FILE_SIZE, read_files, validate_paths
from slice_repo.filters import normalize_patterns
from slice_repo.logging import logger
from slice_repo.output_construction import build_markdown
from slice_repo.reducer import ReduceOptions, reduce_files
from slice_repo.tree import DEFAULT_MAX_ITEMS, render_tree

if TYPE_CHECKING:
    from pathlib import Path

RelevanceFn = Callable[[str], Awaitable[Sequence[str]]]


class GatherOptions(BaseModel):
    """Options of one gather call."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    exclude_patterns: list[str] = Field(default_factory=list, description="Manual patterns, always applied.")
    relevance: RelevanceFn | None = Field(
        default=None,
        exclude=True,
        description="Receives the pre-judgment tree, returns extra exclusion patterns.",
    )
    compress: bool = Field(default=False, description="Reduce file content.")
    compress_options: ReduceOptions = Field(default_factory=ReduceOptions)
    extra_exclude_dirs: list[str] = Field(default_factory=list, description="Directory names to pre-filter.")
    max_file_size: int = Field(default=DEFAULT_MAX_FILE_SIZE, ge=0, description="Max file size in bytes.")
    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=0, description="Max tree/read depth.")
    max_tree_items: int = Field(default=DEFAULT_MAX_ITEMS, ge=1, description="Tree items before truncation.")
    sort_by_size: bool = Field(default=False, description="Order tree entries by descending size.")
    allow_test_artifacts: bool = Field(default=False, description="Keep test files and directories.")
    verbose: bool = Field(default=False, description="Log pipeline steps at INFO level.")


class CompressionStats(BaseModel):
    """Aggregate figures of the reduction step."""

    model_config = ConfigDict(frozen=True)

    original_size: int = Field(..., ge=0)
    compressed_size: int = Field(..., ge=0)
    ratio: float = Field(..., ge=0.0, le=100.0, description="Percentage saved")


class Timing(BaseModel):
    """Wall-clock duration of each pipeline step, in milliseconds."""

    model_config = ConfigDict(frozen=True)

    tree_ms: float = 0.0
    filter_ms: float = 0.0
    read_ms: float = 0.0
    compress_ms: float = 0.0
    total_ms: float = 0.0


class GatherResult(BaseModel):
    """Snapshot of one pipeline execution; this is what gets cached."""

    model_config = ConfigDict(frozen=True)

    markdown: str = Field(..., description="The final markdown context")
    final_tree: str = Field(..., description="Tree after pre-filter, manual and relevance exclusions")
    file_count: int = Field(..., ge=0)
    total_size_bytes: int = Field(..., ge=0, description="UTF-8 size of the markdown")
    skipped: list[SkipRecord] = Field(default_factory=list)
    applied_patterns: list[str] = Field(default_factory=list, description="Manual then relevance patterns")
    relevance_patterns: list[str] = Field(default_factory=list, description="Patterns from the relevance judgment")
    compression: CompressionStats | None = None
    timing: Timing = Field(default_factory=Timing)


class TreeSnapshot(BaseModel):
    """A rendered tree and how long it took."""

    model_config = ConfigDict(frozen=True)

    tree: str
    time_ms: float


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _render(roots: Sequence[Path], options: GatherOptions, patterns: Sequence[str]) -> str:
    return render_tree(
        roots,
        patterns=patterns,
        extra_exclude_dirs=options.extra_exclude_dirs,
        max_depth=options.max_depth,
        max_items=options.max_tree_items,
        allow_test_artifacts=options.allow_test_artifacts,
        sort_by_size=options.sort_by_size,
    )


def gather_tree(paths: Sequence[str | Path], options: GatherOptions | None = None) -> TreeSnapshot:
    """Render the pre-judgment tree (pre-filter plus manual patterns only).

    Raises:
        PathNotFoundError: if a path does not exist
        PathNotADirectoryError: if a path is not a directory
    """
    opts = options or GatherOptions()
    roots = validate_paths(paths)
    start = time.perf_counter()
    tree = _render(roots, opts, normalize_patterns(opts.exclude_patterns))
    return TreeSnapshot(tree=tree, time_ms=_elapsed_ms(start))


async def gather_context(paths: Sequence[str | Path], options: GatherOptions | None = None) -> GatherResult:
    """Run the full pipeline over one or more roots.

    Exclusions combine: pre-filter, then manual patterns, then the patterns
    returned by the relevance judgment (if one is given). The judgment sees
    the tree without pre-filtered entries and without manually excluded ones.

    Args:
        paths: Root directories
        options: Gather options (defaults when None)

    Raises:
        PathNotFoundError: if a path does not exist
        PathNotADirectoryError: if a path is not a directory

    Returns:
        GatherResult: the markdown context and everything needed to explain it
    """
    opts = options or GatherOptions()
    log = logger.info if opts.verbose else logger.debug
    total_start = time.perf_counter()
    roots = validate_paths(paths)
    manual = normalize_patterns(opts.exclude_patterns)

    tree_start = time.perf_counter()
    tree = _render(roots, opts, manual)
    tree_ms = _elapsed_ms(tree_start)
    log("gather.tree", ms=round(tree_ms, 1), lines=tree.count("\n") + 1, manual_excludes=manual)

    filter_ms = 0.0
    relevance_patterns: list[str] = []
    if opts.relevance is not None:
        filter_start = time.perf_counter()
        relevance_patterns = list(await opts.relevance(tree))
        filter_ms = _elapsed_ms(filter_start)
        log("gather.filter", ms=round(filter_ms, 1), relevance_excludes=relevance_patterns)
    all_patterns = [*manual, *normalize_patterns(relevance_patterns)]

    final_tree = _render(roots, opts, all_patterns)

    read_start = time.perf_counter()
    read_result = read_files(
        roots,
        patterns=all_patterns,
        extra_exclude_dirs=opts.extra_exclude_dirs,
        max_file_size=opts.max_file_size,
        max_depth=opts.max_depth,
        allow_test_artifacts=opts.allow_test_artifacts,
    )
    read_ms = _elapsed_ms(read_start)
    log(
        "gather.read",
        ms=round(read_ms, 1),
        files=read_result.total_files,
        kib=round(read_result.total_size / 1024, 1),
        skipped=len(read_result.skipped),
    )

    files = read_result.files
    compression: CompressionStats | None = None
    compress_ms = 0.0
    if opts.compress:
        compress_start = time.perf_counter()
        reduced = reduce_files(files, opts.compress_options)
        compress_ms = _elapsed_ms(compress_start)
        files = reduced.files
        compression = CompressionStats(
            original_size=reduced.original_size,
            compressed_size=reduced.reduced_size,
            ratio=reduced.compression_ratio,
        )
        log("gather.compress", ms=round(compress_ms, 1), ratio=round(reduced.compression_ratio, 1))

    markdown = build_markdown(roots, final_tree, files)

    return GatherResult(
        markdown=markdown,
        final_tree=final_tree,
        file_count=len(files),
        total_size_bytes=len(markdown.encode("utf-8")),
        skipped=read_result.skipped,
        applied_patterns=[*opts.exclude_patterns, *relevance_patterns],
        relevance_patterns=relevance_patterns,
        compression=compression,
        timing=Timing(
            tree_ms=tree_ms,
            filter_ms=filter_ms,
            read_ms=read_ms,
            compress_ms=compress_ms,
            total_ms=_elapsed_ms(total_start),
        ),
    )
