"""Command line entry point.

    slice-repo PATH... [options]            gather context as markdown
    slice-repo cache stats [--namespace NS] show cache statistics
    slice-repo cache clear [--namespace NS] delete cached records

The command line gathers without a relevance judgment: only the pre-filter and
the manual ``--exclude`` patterns apply. Library callers inject one through
`ContextService.gather`.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from slice_repo.exceptions import SliceRepoError
from slice_repo.logging import setup_logging
from slice_repo.service import ContextService
from slice_repo.settings import Settings

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = setup_logging()


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Parse gather arguments into Settings.

    Flags left out keep the value from the config file (``--config``), then the
    environment, then the built-in default.

    Raises:
        ConfigFileError: if the config file is invalid
    """
    p = argparse.ArgumentParser(
        prog="slice-repo",
        description="Extract a bounded, relevant slice of source trees as markdown.",
        epilog="Use 'slice-repo cache {stats,clear}' to inspect or empty the cache.",
    )
    p.add_argument("paths", nargs="*", type=Path, help="Root directories to gather.")
    p.add_argument(
        "--exclude",
        action="append",
        default=None,
        help="Exclusion pattern, a name or '*.ext' (repeatable).",
    )
    p.add_argument(
        "--exclude-dir",
        dest="extra_exclude_dirs",
        action="append",
        default=None,
        help="Extra directory name to drop everywhere (repeatable).",
    )
    p.add_argument(
        "--allow-test-files",
        action="store_true",
        default=None,
        help="Keep test files and test directories.",
    )
    p.add_argument("--max-file-size", type=int, default=None, help="Max file size in bytes.")
    p.add_argument("--max-depth", type=int, default=None, help="Max tree/read depth.")
    p.add_argument("--max-tree-items", type=int, default=None, help="Max tree items.")
    p.add_argument(
        "--sort-by-size",
        action="store_true",
        default=None,
        help="Order the tree by descending size.",
    )
    p.add_argument(
        "--no-compress",
        dest="compress",
        action="store_false",
        default=None,
        help="Keep file content as is.",
    )
    p.add_argument(
        "--signatures-only",
        action="store_true",
        default=None,
        help="Keep only declarations of code files.",
    )
    p.add_argument("--max-file-lines", type=int, default=None, help="Line budget per file.")
    p.add_argument(
        "--no-cache",
        dest="cache",
        action="store_false",
        default=None,
        help="Neither read nor write the context cache.",
    )
    p.add_argument(
        "--cache-only",
        action="store_true",
        default=None,
        help="Only serve cached context; fail on a miss.",
    )
    p.add_argument("--config", type=str, default=None, help="YAML/JSON config file.")
    p.add_argument("--output", type=str, default=None, help="Output file (stdout by default).")
    p.add_argument("--log-file", type=str, default=None, help="Log file path.")
    p.add_argument("--verbose", action="store_true", default=None, help="Verbose logging.")
    args = vars(p.parse_args(argv))

    config_file = args.pop("config")
    overrides: dict[str, Any] = {k: v for k, v in args.items() if v is not None}
    if not overrides.get("paths"):
        overrides.pop("paths", None)
    return Settings.from_sources(overrides, config_file)


def parse_cache_args(argv: Sequence[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="slice-repo cache", description="Inspect or empty the cache.")
    p.add_argument("action", choices=["stats", "clear"], help="What to do.")
    p.add_argument("--namespace", type=str, default=None, help="Restrict to one namespace.")
    p.add_argument("--cache-dir", type=str, default=None, help="Cache directory.")
    p.add_argument("--config", type=str, default=None, help="YAML/JSON config file.")
    return p.parse_args(argv)


def cache_main(argv: Sequence[str]) -> int:
    args = parse_cache_args(argv)
    overrides = {"cache_dir": args.cache_dir} if args.cache_dir else {}
    try:
        settings = Settings.from_sources(overrides, args.config)
    except SliceRepoError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValidationError as e:
        print(f"Error: invalid option values\n{e}", file=sys.stderr)
        return 2

    cache = settings.cache_handle()
    try:
        if args.action == "clear":
            removed = cache.clear(args.namespace)
            print(f"Removed {removed} cache entries from {cache.cache_dir}")
        else:
            print(cache.stats(args.namespace).model_dump_json(indent=2))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if args and args[0] == "cache":
        return cache_main(args[1:])

    try:
        settings = parse_args(args)
    except SliceRepoError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValidationError as e:
        print(f"Error: invalid option values\n{e}", file=sys.stderr)
        return 2
    if settings.log_file or settings.verbose:
        setup_logging(settings.log_file or None, verbose=settings.verbose)
    if not settings.paths:
        print("Error: no paths given (pass PATH... or 'context' in --config)", file=sys.stderr)
        return 2

    use_cache = settings.cache or settings.cache_only
    service = ContextService(settings.cache_handle() if use_cache else None)
    try:
        result = asyncio.run(service.gather(settings.paths, settings.context_options()))
    except SliceRepoError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if result is None:
        print("Error: no cached context for these paths and options", file=sys.stderr)
        return 1

    logger.info(
        "cli.gathered",
        files=result.file_count,
        bytes=result.total_size_bytes,
        skipped=len(result.skipped),
        from_cache=result.from_cache,
    )
    if not settings.output:
        sys.stdout.write(result.markdown)
        return 0

    out_path = Path(settings.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(result.markdown, encoding="utf-8")
    print(f"Wrote {out_path} files={result.file_count} bytes={result.total_size_bytes} cached={result.from_cache}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
