"""Namespaced, TTL- and count-bounded cache persisted as JSON files.

Every namespace shares one flat directory; each record is one file named
``{namespace}__{key}.json`` holding ``{"value": ..., "timestamp": <epoch ms>}``.
The record's file modification time is set to its write time, so directory
listing alone drives ``clear``, ``stats`` and pruning.

Pruning is global: once the directory holds more than ``max_entries`` records,
the oldest ones are deleted whatever their namespace. There is no locking;
concurrent writers sharing a directory can overwrite each other.
"""

from __future__ import annotations

import hashlib
import json
import os
import re
import tempfile
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from slice_repo.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")

DEFAULT_CACHE_DIR = Path(tempfile.gettempdir()) / "slice-repo-cache"
DEFAULT_TTL_DAYS = 7.0
DEFAULT_MAX_ENTRIES = 100

CONTEXT_NAMESPACE = "context"
LLM_NAMESPACE = "llm"

_MS_PER_DAY = 24 * 60 * 60 * 1000
_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def make_key(*parts: object) -> str:
    """Build a deterministic cache key from an ordered list of values.

    Strings are hashed as-is; everything else is JSON-serialised first (with
    sorted keys). Each part is followed by a NUL separator so that adjacent
    parts cannot run together. The hash is order-sensitive: callers normalize
    the order of their inputs before calling.

    Args:
        *parts (object): the semantically relevant inputs

    Returns:
        str: SHA-256 hex digest
    """
    digest = hashlib.sha256()
    for part in parts:
        text = part if isinstance(part, str) else json.dumps(part, sort_keys=True, default=str)
        digest.update(text.encode("utf-8"))
        digest.update(b"\x00")
    return digest.hexdigest()


class CacheStats(BaseModel):
    """Statistics about the records of one namespace (or the whole cache)."""

    total_entries: int = Field(default=0, ge=0)
    total_size: int = Field(default=0, ge=0, description="Bytes on disk")
    oldest_entry: int | None = Field(default=None, description="Oldest write time (epoch ms)")
    newest_entry: int | None = Field(default=None, description="Newest write time (epoch ms)")


class UnifiedCache:
    """One persistent store shared by every namespace.

    Construct it once per process and hand it to whatever needs caching.
    Failures never escape: a read problem is a miss, a write problem is ignored.
    """

    def __init__(
        self,
        cache_dir: Path | str | None = None,
        *,
        ttl_days: float = DEFAULT_TTL_DAYS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            cache_dir: Directory holding the records (created lazily)
            ttl_days: Maximum age of a record before it counts as a miss
            max_entries: Maximum number of records across all namespaces
            clock: Returns the current time in epoch seconds
        """
        self.cache_dir = Path(cache_dir) if cache_dir is not None else DEFAULT_CACHE_DIR
        self.ttl_ms = int(ttl_days * _MS_PER_DAY)
        self.max_entries = max_entries
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    @staticmethod
    def _check_namespace(namespace: str) -> None:
        if "__" in namespace or not _NAME_RE.match(namespace):
            msg = f"Invalid cache namespace: {namespace!r}"
            raise ValueError(msg)

    def _path(self, namespace: str, key: str) -> Path:
        self._check_namespace(namespace)
        if not _NAME_RE.match(key):
            msg = f"Invalid cache key: {key!r}"
            raise ValueError(msg)
        return self.cache_dir / f"{namespace}__{key}.json"

    def _records(self, namespace: str | None = None) -> list[Path]:
        if namespace is None:
            pattern = "*__*.json"
        else:
            self._check_namespace(namespace)
            pattern = f"{namespace}__*.json"
        try:
            return [p for p in self.cache_dir.glob(pattern) if p.is_file()]
        except OSError:
            return []

    def get(self, namespace: str, key: str) -> Any | None:  # noqa: ANN401
        """Read a cached value.

        Args:
            namespace: Namespace (e.g. "context", "llm")
            key: Key produced by `make_key`

        Returns:
            The cached value, or None on miss or expiry
        """
        path = self._path(namespace, key)
        short = key[:12]
        try:
            record = json.loads(path.read_text(encoding="utf-8"))
            value = record["value"]
            written_at = int(record["timestamp"])
        except FileNotFoundError:
            logger.debug("cache.miss", namespace=namespace, key=short)
            return None
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.debug("cache.read_failed", namespace=namespace, key=short, error=str(e))
            return None

        age_ms = self._now_ms() - written_at
        if age_ms > self.ttl_ms:
            logger.debug("cache.expired", namespace=namespace, key=short)
            try:
                path.unlink()
            except OSError:
                pass
            return None

        logger.debug("cache.hit", namespace=namespace, key=short, age_minutes=age_ms // 60_000)
        return value

    def set(self, namespace: str, key: str, value: Any) -> bool:  # noqa: ANN401
        """Write a JSON-serialisable value, then prune the cache.

        Args:
            namespace: Namespace
            key: Key produced by `make_key`
            value: Any JSON-serialisable value

        Returns:
            True if the record was written
        """
        path = self._path(namespace, key)
        now = self._now_ms()
        try:
            payload = json.dumps({"value": value, "timestamp": now})
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(payload, encoding="utf-8")
            os.utime(path, ns=(now * 1_000_000, now * 1_000_000))
        except (OSError, TypeError, ValueError) as e:
            logger.debug("cache.write_failed", namespace=namespace, key=key[:12], error=str(e))
            return False
        logger.debug("cache.set", namespace=namespace, key=key[:12])
        self.prune(keep=path)
        return True

    def clear(self, namespace: str | None = None) -> int:
        """Delete every record, or only those of one namespace.

        Raises:
            ValueError: if `namespace` is not a valid namespace name

        Returns:
            Number of records deleted
        """
        count = 0
        for path in self._records(namespace):
            try:
                path.unlink()
            except OSError:
                continue
            count += 1
        logger.debug("cache.cleared", namespace=namespace, count=count)
        return count

    def stats(self, namespace: str | None = None) -> CacheStats:
        """Count records and their size, with the oldest and newest write times."""
        total_entries = 0
        total_size = 0
        oldest: int | None = None
        newest: int | None = None
        for path in self._records(namespace):
            try:
                st = path.stat()
            except OSError:
                continue
            total_entries += 1
            total_size += st.st_size
            written = st.st_mtime_ns // 1_000_000
            oldest = written if oldest is None else min(oldest, written)
            newest = written if newest is None else max(newest, written)
        return CacheStats(
            total_entries=total_entries,
            total_size=total_size,
            oldest_entry=oldest,
            newest_entry=newest,
        )

    def prune(self, keep: Path | None = None) -> int:
        """Delete the oldest records (across all namespaces) beyond `max_entries`.

        Args:
            keep: Record that is never deleted, such as the one just written.
                Records sharing its write time would otherwise tie with it.

        Returns:
            Number of records deleted
        """
        dated: list[tuple[bool, int, str, Path]] = []
        for path in self._records():
            try:
                dated.append((path == keep, path.stat().st_mtime_ns, path.name, path))
            except OSError:
                continue
        if len(dated) <= self.max_entries:
            return 0

        dated.sort(reverse=True)
        removed = 0
        for _kept, _mtime, _name, path in dated[max(self.max_entries, 1 if keep else 0) :]:
            try:
                path.unlink()
            except OSError:
                continue
            removed += 1
            logger.debug("cache.pruned", path=str(path))
        return removed

    def namespace(self, name: str, value_type: Any) -> CacheNamespace[Any]:  # noqa: ANN401
        """Return a typed view over one namespace."""
        return CacheNamespace(self, name, value_type)


class CacheNamespace(Generic[T]):
    """Typed reader/writer pair for one namespace.

    Values are dumped to JSON-compatible data on write and validated back into
    `value_type` on read; a record that no longer validates is a miss.
    """

    def __init__(self, cache: UnifiedCache, name: str, value_type: type[T]) -> None:
        self.cache = cache
        self.name = name
        self._adapter: TypeAdapter[T] = TypeAdapter(value_type)

    def get(self, key: str) -> T | None:
        raw = self.cache.get(self.name, key)
        if raw is None:
            return None
        try:
            return self._adapter.validate_python(raw)
        except ValidationError as e:
            logger.debug("cache.invalid_record", namespace=self.name, key=key[:12], error=str(e))
            return None

    def set(self, key: str, value: T) -> bool:
        return self.cache.set(self.name, key, self._adapter.dump_python(value, mode="json"))
