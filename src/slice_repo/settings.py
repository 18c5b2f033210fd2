from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from slice_repo.cache import DEFAULT_CACHE_DIR, DEFAULT_MAX_ENTRIES, DEFAULT_TTL_DAYS, UnifiedCache
from slice_repo.exceptions import ConfigFileError
from slice_repo.file_manipulation import DEFAULT_MAX_DEPTH, DEFAULT_MAX_FILE_SIZE
from slice_repo.logging import logger
from slice_repo.reducer import ReduceOptions
from slice_repo.service import ContextOptions
from slice_repo.tree import DEFAULT_MAX_ITEMS

ENV_FILE = find_dotenv(usecwd=True)

ENV_CACHE_DIR = "SLICE_REPO_CACHE_DIR"
ENV_CACHE_TTL_DAYS = "SLICE_REPO_CACHE_TTL_DAYS"
ENV_CACHE_MAX_ENTRIES = "SLICE_REPO_CACHE_MAX_ENTRIES"


def _env(name: str, default: object) -> Any:  # noqa: ANN401
    """Read a default from the environment (after loading the nearest .env file)."""
    if ENV_FILE:
        load_dotenv(ENV_FILE, override=False)
    value = os.environ.get(name, "").strip()
    return value or default


class Settings(BaseModel):
    """Configuration settings for the slice_repo module.

    Environment variables only provide defaults for the cache location and
    bounds; configuration files and command-line flags override them.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, validate_default=True)

    paths: list[Path] = Field(default_factory=list, description="Root directories to gather.")
    exclude: list[str] = Field(default_factory=list, description="Manual exclusion patterns.")
    extra_exclude_dirs: list[str] = Field(default_factory=list, description="Extra directory names to drop.")
    allow_test_files: bool = Field(default=False, description="Keep test files and test directories.")
    max_file_size: int = Field(default=DEFAULT_MAX_FILE_SIZE, ge=0, description="Max file size in bytes.")
    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=0, description="Max tree/read depth.")
    max_tree_items: int = Field(default=DEFAULT_MAX_ITEMS, ge=1, description="Max tree items.")
    sort_by_size: bool = Field(default=False, description="Order the tree by descending size.")

    compress: bool = Field(default=True, description="Reduce file content.")
    compress_options: dict[str, Any] = Field(default_factory=dict, description="Reducer settings.")
    signatures_only: bool = Field(default=False, description="Keep only declarations of code files.")
    max_file_lines: int | None = Field(default=None, ge=1, description="Line budget per file.")

    cache: bool = Field(default=True, description="Use the context cache.")
    cache_only: bool = Field(default=False, description="Only serve cached context.")
    cache_dir: Path = Field(
        default_factory=lambda: _env(ENV_CACHE_DIR, DEFAULT_CACHE_DIR),
        description="Cache directory.",
    )
    cache_ttl_days: float = Field(
        default_factory=lambda: _env(ENV_CACHE_TTL_DAYS, DEFAULT_TTL_DAYS),
        gt=0,
        description="Cache entry lifetime in days.",
    )
    cache_max_entries: int = Field(
        default_factory=lambda: _env(ENV_CACHE_MAX_ENTRIES, DEFAULT_MAX_ENTRIES),
        ge=1,
        description="Max cache entries, all namespaces together.",
    )

    output: str = Field(default="", description="Output file; stdout when empty.")
    log_file: str = Field(default="", description="Log file path.")
    verbose: bool = Field(default=False, description="Verbose logging.")

    def reduce_options(self) -> ReduceOptions:
        """Reducer settings, with the dedicated flags applied on top of `compress_options`."""
        values = dict(self.compress_options)
        if self.signatures_only:
            values["signatures_only"] = True
        if self.max_file_lines is not None:
            values["max_file_lines"] = self.max_file_lines
        return ReduceOptions(**values)

    def context_options(self) -> ContextOptions:
        return ContextOptions(
            exclude_patterns=self.exclude,
            compress=self.compress,
            compress_options=self.reduce_options(),
            extra_exclude_dirs=self.extra_exclude_dirs,
            max_file_size=self.max_file_size,
            max_depth=self.max_depth,
            max_tree_items=self.max_tree_items,
            sort_by_size=self.sort_by_size,
            allow_test_artifacts=self.allow_test_files,
            verbose=self.verbose,
            use_cache=self.cache,
            cache_only=self.cache_only,
        )

    def cache_handle(self) -> UnifiedCache:
        """Build the cache instance shared by every component of this run."""
        return UnifiedCache(
            self.cache_dir,
            ttl_days=self.cache_ttl_days,
            max_entries=self.cache_max_entries,
        )

    @classmethod
    def from_sources(cls, overrides: dict[str, Any], config_file: str | Path | None = None) -> Settings:
        """Merge a configuration file with explicit overrides (overrides win)."""
        values: dict[str, Any] = {}
        if config_file:
            values.update(load_config_file(config_file))
        values.update(overrides)
        return cls(**values)


class _ConfigFile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    context: list[str] | str | None = None
    exclude: list[str] | None = None
    allow_test_files: bool | None = None
    max_file_size: int | None = None
    max_depth: int | None = None
    max_tree_items: int | None = None
    compress: bool | None = None
    compress_options: ReduceOptions | None = None
    cache: bool | None = None
    cache_ttl_days: float | None = None
    cache_max_entries: int | None = None
    cache_dir: str | None = None
    verbose: bool | None = None
    output: str | None = None


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load a YAML (or JSON) configuration file into Settings values.

    Relative paths in ``context``, ``cache_dir`` and ``output`` are resolved
    against the directory holding the file. Unknown keys are ignored with a
    warning.

    Args:
        path (str | Path): the configuration file

    Raises:
        ConfigFileError: if the file cannot be read, is not a mapping, or holds
            values of the wrong type

    Returns:
        dict[str, Any]: keyword arguments for `Settings`
    """
    config_path = Path(path).expanduser().resolve()
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigFileError(path=config_path, reason=f"cannot read file ({e.strerror or e})") from e
    except yaml.YAMLError as e:
        raise ConfigFileError(path=config_path, reason=f"malformed YAML/JSON ({e})") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigFileError(path=config_path, reason="expected a mapping at the top level")

    unknown = sorted(str(k) for k in raw if k not in _ConfigFile.model_fields)
    for key in unknown:
        logger.warning("config.unknown_key", path=str(config_path), key=key)

    try:
        parsed = _ConfigFile.model_validate(raw)
    except ValidationError as e:
        raise ConfigFileError(path=config_path, reason=str(e)) from e

    base = config_path.parent
    values: dict[str, Any] = parsed.model_dump(exclude_none=True, exclude={"context", "compress_options"})
    if parsed.context is not None:
        context = [parsed.context] if isinstance(parsed.context, str) else parsed.context
        values["paths"] = [base / Path(p).expanduser() for p in context]
    if parsed.compress_options is not None:
        values["compress_options"] = parsed.compress_options.model_dump(exclude_unset=True)
    if parsed.cache_dir is not None:
        values["cache_dir"] = base / Path(parsed.cache_dir).expanduser()
    if parsed.output is not None:
        values["output"] = str(base / parsed.output)
    return values
