"""Whole-pipeline memoization on top of `gather_context`."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field

from slice_repo.cache import CONTEXT_NAMESPACE, make_key
from slice_repo.file_manipulation import validate_paths
from slice_repo.gather import GatherOptions, GatherResult, gather_context
from slice_repo.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from slice_repo.cache import UnifiedCache
    from slice_repo.gather import RelevanceFn

# Options that never change the produced context
_KEY_EXCLUDED_FIELDS = {"verbose", "use_cache", "cache_only"}


class ContextOptions(GatherOptions):
    """Gather options plus caching behaviour."""

    compress: bool = Field(default=True, description="Reduce file content.")
    use_cache: bool = Field(default=True, description="Read and write the context cache.")
    cache_only: bool = Field(default=False, description="Never run the pipeline; None on a miss.")


class ContextResult(GatherResult):
    """A gather result with its cache metadata."""

    from_cache: bool = False
    cache_key: str | None = None


def context_cache_key(paths: Sequence[Path], options: GatherOptions) -> str:
    """Key a gather call on its roots and every option that affects the output.

    Roots and exclusion patterns are sorted, so their order does not matter.
    Whether a relevance judgment is supplied is part of the key; which one is
    not, so callers switching judgments should clear the namespace.
    """
    payload = options.model_dump(mode="json", exclude=_KEY_EXCLUDED_FIELDS)
    payload["exclude_patterns"] = sorted(payload["exclude_patterns"])
    payload["extra_exclude_dirs"] = sorted(d.lower() for d in payload["extra_exclude_dirs"])
    payload["relevance"] = options.relevance is not None
    return make_key(CONTEXT_NAMESPACE, sorted(str(p) for p in paths), payload)


class ContextService:
    """Run gathers through the context cache.

    The cache handle is injected; with None every call runs the pipeline.
    """

    def __init__(self, cache: UnifiedCache | None = None) -> None:
        self.cache = cache
        self._store = cache.namespace(CONTEXT_NAMESPACE, GatherResult) if cache is not None else None

    async def gather(
        self,
        paths: Sequence[str | Path],
        options: ContextOptions | None = None,
        relevance: RelevanceFn | None = None,
    ) -> ContextResult | None:
        """Gather context, serving it from the cache when possible.

        Args:
            paths: Root directories
            options: Context options (defaults when None)
            relevance: Relevance judgment, overriding the one in `options`

        Raises:
            PathNotFoundError: if a path does not exist
            PathNotADirectoryError: if a path is not a directory

        Returns:
            The result, or None when `cache_only` is set and the cache misses
        """
        opts = options or ContextOptions()
        if relevance is not None:
            opts = opts.model_copy(update={"relevance": relevance})
        roots = validate_paths(paths)
        key = context_cache_key(roots, opts)

        if self._store is not None and (opts.use_cache or opts.cache_only):
            cached = self._store.get(key)
            if cached is not None:
                logger.debug("service.cache_hit", key=key[:12], kib=round(cached.total_size_bytes / 1024, 1))
                return ContextResult(**dict(cached), from_cache=True, cache_key=key)

        if opts.cache_only:
            logger.debug("service.cache_only_miss", key=key[:12])
            return None

        result = await gather_context(roots, opts)
        if self._store is not None and opts.use_cache:
            self._store.set(key, result)
        return ContextResult(**dict(result), from_cache=False, cache_key=key)
