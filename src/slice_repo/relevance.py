"""Adapters turning a plain ``prompt -> response`` coroutine into a relevance judgment.

No network client lives here: callers inject the coroutine that talks to
whatever model they use. Responses can be memoized in the ``llm`` namespace of
a `UnifiedCache`.
"""

from __future__ import annotations

import functools
import json
import re
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from slice_repo.cache import LLM_NAMESPACE, make_key
from slice_repo.exceptions import RelevanceResponseError
from slice_repo.logging import logger

if TYPE_CHECKING:
    from slice_repo.cache import UnifiedCache
    from slice_repo.gather import RelevanceFn

AskFn = Callable[[str], Awaitable[str]]

FILTER_TAG = "folder-filter"

FILTER_INSTRUCTIONS = """\
You review project structures before their source code is handed to a code analyst.
List the folders and files that should be EXCLUDED so the context stays small while
the important source code is kept.

Exclude:
- dependencies and their caches (node_modules, venv, .venv, vendor, Pods, .npm, .yarn)
- build output and reports (dist, build, out, target, coverage, .next, .nuxt)
- editor and environment files (.vscode, .idea, .env)
- lock files and temporary files

Keep:
- source folders (src, lib, app, components, pages)
- root configuration files (package.json, pyproject.toml, tsconfig.json)
- tests when they explain how the code is used
- documentation (docs, README)

Answer with ONLY a JSON array of plain folder or file names, or extension globs:
["node_modules", "dist", ".git", "coverage", ".idea", "*.lock"]
Do not escape characters (write ".git", never "\\.git"). No explanations."""

_FENCE_RE = re.compile(r"```json\n?|\n?```")
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)
_JSON_ESCAPES = frozenset('"\\/bfnrtu')


def build_filter_prompt(tree: str) -> str:
    """Combine the filter instructions with the tree to analyze."""
    return f"{FILTER_INSTRUCTIONS}\n\nAnalyze this project structure and list what to exclude:\n\n{tree}"


def _drop_invalid_escape(match: re.Match[str]) -> str:
    return match.group(0) if match.group(1) in _JSON_ESCAPES else match.group(1)


def parse_exclusion_patterns(output: str) -> list[str]:
    """Parse a model response into a list of exclusion patterns.

    Markdown code fences are removed, the first ``[...]`` span is extracted,
    and backslashes that do not start a valid JSON escape are dropped (models
    tend to write ``"\\.git"``).

    Args:
        output (str): the raw response text

    Raises:
        RelevanceResponseError: if the response is not a JSON array of strings

    Returns:
        list[str]: the patterns, in response order
    """
    cleaned = _FENCE_RE.sub("", output).strip()
    match = _ARRAY_RE.search(cleaned)
    if match:
        cleaned = match.group(0)
    cleaned = _ESCAPE_RE.sub(_drop_invalid_escape, cleaned)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise RelevanceResponseError(output=output, reason=f"invalid JSON ({e})") from e
    if not isinstance(data, list):
        raise RelevanceResponseError(output=output, reason="expected an array of patterns")
    if not all(isinstance(p, str) for p in data):
        raise RelevanceResponseError(output=output, reason="all patterns must be strings")
    return data


def cached_ask(ask: AskFn, cache: UnifiedCache | None, *, tag: str) -> AskFn:
    """Memoize an ask coroutine in the ``llm`` namespace.

    Responses are keyed by ``make_key(tag, prompt)``; the tag keeps answers to
    the same prompt apart when they come from different purposes or models.
    With no cache the coroutine is returned unchanged.
    """
    if cache is None:
        return ask
    store = cache.namespace(LLM_NAMESPACE, str)

    @functools.wraps(ask)
    async def wrapper(prompt: str) -> str:
        key = make_key(tag, prompt)
        hit = store.get(key)
        if hit is not None:
            logger.debug("llm.cache_hit", tag=tag, key=key[:12])
            return hit
        response = await ask(prompt)
        store.set(key, response)
        return response

    return wrapper


def make_relevance_filter(ask: AskFn, *, cache: UnifiedCache | None = None, tag: str = FILTER_TAG) -> RelevanceFn:
    """Build a relevance judgment backed by a model.

    Args:
        ask (AskFn): sends one prompt, returns the model response
        cache (UnifiedCache | None): memoizes responses when given
        tag (str): cache key prefix for the responses

    Returns:
        RelevanceFn: takes the pre-judgment tree, returns exclusion patterns
    """
    ask_fn = cached_ask(ask, cache, tag=tag)

    async def relevance(tree: str) -> list[str]:
        output = await ask_fn(build_filter_prompt(tree))
        patterns = parse_exclusion_patterns(output)
        logger.debug("relevance.patterns", tag=tag, patterns=patterns)
        return patterns

    return relevance
