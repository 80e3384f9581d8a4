"""Canonicalization of script URLs and source-map paths into report keys.

Examples (source root /repo):
    file:///repo/src/a.js                      -> src/a.js
    /repo/src/a.js                             -> src/a.js
    webpack:///./src/a.js                      -> src/a.js
    webpack://app/src/a.js                     -> src/a.js
    /repo/webpack:/src/a.js                    -> src/a.js
    webpack:///webpack:/lib/webpack:/src/a.js  -> src/a.js
    http://localhost:3000/static/app.js        -> ../static/app.js
    /elsewhere/lib.js                          -> ../elsewhere/lib.js
"""

from __future__ import annotations

import os
import posixpath
from collections.abc import Callable, Mapping
from pathlib import Path
from urllib.parse import SplitResult, unquote, urlsplit

WEBPACK_SCHEME_PREFIX = "webpack"
WEBPACK_MARKER = "/webpack:/"

PathHook = Callable[[str], str]


def split_url(raw: str) -> SplitResult | None:
    """Split ``raw`` if it is an absolute URL.

    Single-letter schemes are Windows drive letters, not URLs.
    """
    parts = urlsplit(raw)
    if len(parts.scheme) < 2:
        return None
    return parts


def is_webpack_scheme(scheme: str) -> bool:
    """webpack:, webpack-internal: and friends encode a path, not a root URL."""
    return scheme.lower().startswith(WEBPACK_SCHEME_PREFIX)


def _remove_dot_segments(path: str) -> str:
    if not path:
        return path
    normalized = posixpath.normpath(path)
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def _to_url_path(raw_path: str) -> tuple[str, str]:
    """Return (scheme, decoded path) for a URL or filesystem path."""
    parts = split_url(raw_path)
    if parts is None:
        return "file", Path(os.path.abspath(raw_path)).as_posix()
    return parts.scheme.lower(), _remove_dot_segments(unquote(parts.path))


def normalize_path(raw_path: str, source_root: str) -> str:
    """Canonicalize ``raw_path`` into a root-relative POSIX path.

    Args:
        raw_path: Script URL, source-map source, or filesystem path.
        source_root: Absolute POSIX path of the project root.

    Returns:
        A path that is never absolute and never starts with a scheme. Paths
        outside ``source_root`` start with ``../``.
    """
    scheme, path = _to_url_path(raw_path)

    if is_webpack_scheme(scheme):
        # webpack:///src/a.js carries a relative path behind the root slash
        path = path[1:] if path.startswith("/") else path

    if WEBPACK_MARKER in path:
        # A webpack sourceRoot joined as a plain path embeds the marker,
        # possibly several times; only the innermost remainder is real.
        path = path[path.rindex(WEBPACK_MARKER) + len(WEBPACK_MARKER) :]
    elif posixpath.isabs(path):
        path = posixpath.relpath(path, source_root)

    return path.lstrip("/")


class PathNormalizer:
    """PathNormalizer bound to one source root."""

    def __init__(self, source_root: Path) -> None:
        self._source_root = Path(os.path.abspath(source_root)).as_posix()

    @property
    def source_root(self) -> str:
        return self._source_root

    def normalize(self, raw_path: str) -> str:
        return normalize_path(raw_path, self._source_root)

    __call__ = normalize


def make_path_rewriter(rewrites: Mapping[str, str]) -> PathHook | None:
    """Build a hook applying prefix rewrites, longest prefix first.

    Returns None when there is nothing to rewrite.
    """
    if not rewrites:
        return None
    ordered = sorted(rewrites.items(), key=lambda item: len(item[0]), reverse=True)

    def rewrite(path: str) -> str:
        for prefix, replacement in ordered:
            if path.startswith(prefix):
                return replacement + path[len(prefix) :]
        return path

    return rewrite
