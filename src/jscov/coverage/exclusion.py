"""Per-script exclusion decisions.

An ExclusionFilter is created for each script conversion; it memoizes its
decision per raw path because the translator asks about the same source once
per engine range.

Globs follow shell semantics on ``/``-separated paths: ``*`` and ``?`` stay
within one path segment, ``**`` spans any number of segments and ``{a,b}``
lists alternatives.
"""

from __future__ import annotations

import functools
import re
from collections.abc import Sequence

from jscov.core.excludes import is_bundler_runtime, is_dependency_path
from jscov.coverage.paths import PathHook, PathNormalizer

_BRACE_RE = re.compile(r"\{([^{}]*)\}")


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternatives: ``src/*.{js,ts}`` -> ``src/*.js``, ``src/*.ts``."""
    match = _BRACE_RE.search(pattern)
    if match is None or "," not in match.group(1):
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end() :]
    expanded: list[str] = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(f"{head}{option}{tail}"))
    return expanded


def _translate_class(pattern: str, i: int) -> tuple[str, int]:
    """Translate the ``[...]`` class starting at ``pattern[i]``."""
    j = i + 1
    if j < len(pattern) and pattern[j] in "!^":
        j += 1
    if j < len(pattern) and pattern[j] == "]":
        j += 1
    while j < len(pattern) and pattern[j] != "]":
        j += 1
    if j >= len(pattern):
        # Unterminated: a literal bracket
        return re.escape("["), i + 1
    body = pattern[i + 1 : j].replace("\\", "\\\\")
    if body[:1] in ("!", "^"):
        body = "^" + body[1:]
    return f"[{body}]", j + 1


@functools.lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile one brace-free glob into an anchored regex.

    ``**/`` may also match zero directories, so ``**/generated/*.js`` matches
    ``generated/a.js`` and ``src/**/a.js`` matches ``src/a.js``.
    """
    parts: list[str] = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if pattern.startswith("**", i):
            at_segment_start = i == 0 or pattern[i - 1] == "/"
            if at_segment_start and pattern.startswith("**/", i):
                parts.append("(?:.*/)?")
                i += 3
            elif at_segment_start and i + 2 == n:
                parts.append(".*")
                i += 2
            else:
                # ``a**b`` is two single-segment stars
                parts.append("[^/]*")
                i += 2
        elif c == "*":
            parts.append("[^/]*")
            i += 1
        elif c == "?":
            parts.append("[^/]")
            i += 1
        elif c == "[":
            translated, i = _translate_class(pattern, i)
            parts.append(translated)
        else:
            parts.append(re.escape(c))
            i += 1
    return re.compile("".join(parts) + r"\Z")


def matches_glob(rel_path: str, pattern: str) -> bool:
    """Check if a root-relative path matches a glob pattern."""
    return any(glob_to_regex(candidate).match(rel_path) for candidate in expand_braces(pattern))


class ExclusionFilter:
    """Decides whether a source path is left out of the report.

    Args:
        normalizer: Maps raw source paths to root-relative paths.
        globs: User exclusion globs.
        path_hook: Rewrite applied to the normalized path before any rule,
            so rules see the same key the report uses.
    """

    def __init__(
        self,
        normalizer: PathNormalizer,
        globs: Sequence[str] = (),
        *,
        path_hook: PathHook | None = None,
    ) -> None:
        self._normalizer = normalizer
        self._globs = tuple(globs)
        self._path_hook = path_hook
        self._cache: dict[str, bool] = {}

    def is_excluded(self, raw_path: str) -> bool:
        cached = self._cache.get(raw_path)
        if cached is not None:
            return cached

        normalized = self._normalizer.normalize(raw_path)
        if self._path_hook is not None:
            normalized = self._path_hook(normalized)
        excluded = (
            # outside of the source root
            normalized.startswith("../")
            or normalized == ".."
            or is_bundler_runtime(raw_path, normalized)
            or is_dependency_path(normalized)
            or any(matches_glob(normalized, glob) for glob in self._globs)
        )
        self._cache[raw_path] = excluded
        return excluded

    __call__ = is_excluded
