"""Source map discovery for engine scripts.

For each script, the first of these that yields a map wins:

1. an inline ``sourceMappingURL=data:...`` comment (no I/O),
2. a linked ``sourceMappingURL=<url>`` comment, resolved against the script
   url and fetched by scheme (``file:``, ``data:``, anything else over HTTP),
3. when the source has no such comment, an implicit ``<url>.map``.

A map that cannot be found, fetched or parsed resolves to None and only
affects its own script.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import re
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from pathlib import Path
from urllib.parse import unquote, urljoin
from urllib.request import url2pathname

import httpx
import structlog

from jscov.core.errors import CoverageError
from jscov.coverage.paths import split_url
from jscov.coverage.sourcemap import SourceMap

logger = structlog.get_logger()

SourceMapRecord = dict[str, SourceMap | None]

# //# sourceMappingURL=data:application/json;charset=utf-8;base64,....
INLINE_MAP_RE = re.compile(
    r"^\s*?/[/*][@#]\s+?sourceMappingURL=data:"
    r"(?:(?:application|text)/json(?:;charset=[^;,]+?)?)?(;base64)?,(.*?)(?:\s*\*/)?\s*$",
    re.MULTILINE,
)

# //# sourceMappingURL=app.js.map  or  /*# sourceMappingURL=app.css.map */
MAP_FILE_RE = re.compile(
    r"(?://[@#][ \t]+?sourceMappingURL=([^\s'\"`]+?)[ \t]*?$)"
    r"|(?:/\*[@#][ \t]+sourceMappingURL=([^*]+?)[ \t]*?\*/[ \t]*?$)",
    re.MULTILINE,
)

FETCH_ERRORS = (httpx.HTTPError, httpx.InvalidURL, OSError, ValueError, CoverageError)


def _last_match(pattern: re.Pattern[str], source: str) -> re.Match[str] | None:
    matches = list(pattern.finditer(source))
    return matches[-1] if matches else None


def _b64decode(data: str) -> bytes:
    """Decode standard or url-safe base64, padding optional."""
    data = unquote(data).strip()
    data += "=" * (-len(data) % 4)
    if "-" in data or "_" in data:
        return base64.urlsafe_b64decode(data)
    return base64.b64decode(data)


def decode_data_url(url: str) -> str:
    """Return the payload of a ``data:`` URL as text.

    Raises:
        ValueError: If the URL has no payload separator or bad base64.
    """
    header, sep, payload = url.removeprefix("data:").partition(",")
    if not sep:
        raise ValueError("data URL without ','")
    params = [p.strip().lower() for p in header.split(";")[1:]]
    if "base64" in params:
        try:
            return _b64decode(payload).decode("utf-8")
        except binascii.Error as e:
            raise ValueError(f"invalid base64 payload: {e}") from e
    return unquote(payload)


def find_inline_map(source: str) -> str | None:
    """JSON text of the last inline map comment, if any."""
    match = _last_match(INLINE_MAP_RE, source)
    if match is None:
        return None
    is_base64, payload = match.group(1), match.group(2)
    if is_base64:
        return _b64decode(payload).decode("utf-8")
    return unquote(payload)


def find_map_file_url(source: str) -> str | None:
    """Target of the last linked map comment, if any."""
    match = _last_match(MAP_FILE_RE, source)
    if match is None:
        return None
    return (match.group(1) or match.group(2)).strip()


class SourceMapResolver:
    """Resolves source maps, sharing one HTTP client across fetches.

    Args:
        client: Client for http(s) fetches. When None, one is created per
            ``resolve``/``resolve_all`` call and closed afterwards.
        timeout: Per-request timeout in seconds for the owned client.
    """

    def __init__(self, client: httpx.AsyncClient | None = None, *, timeout: float | None = 30.0):
        self._client = client
        self._timeout = timeout

    @asynccontextmanager
    async def _client_scope(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
            yield client

    async def resolve(self, url: str, source: str) -> SourceMap | None:
        async with self._client_scope() as client:
            return await self._resolve(url, source, client)

    async def resolve_all(self, sources: Mapping[str, str]) -> SourceMapRecord:
        """Resolve every script's map concurrently."""
        urls = list(sources)
        async with self._client_scope() as client:
            maps = await asyncio.gather(*(self._resolve(url, sources[url], client) for url in urls))
        record = dict(zip(urls, maps, strict=True))
        logger.debug(
            "source_maps_resolved",
            scripts=len(record),
            resolved=sum(1 for m in maps if m is not None),
        )
        return record

    async def _resolve(
        self, url: str, source: str, client: httpx.AsyncClient
    ) -> SourceMap | None:
        try:
            inline = find_inline_map(source)
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning("source_map_unresolved", url=url, kind="inline", reason=str(e))
            return None
        if inline is not None:
            return self._parse(url, inline, kind="inline")

        map_url = find_map_file_url(source)
        if map_url is not None:
            target = urljoin(url, map_url) if url else map_url
            return await self._fetch_and_parse(url, target, client, kind="linked")

        if not url:
            return None
        return await self._fetch_and_parse(url, f"{url}.map", client, kind="implicit")

    def _parse(self, url: str, text: str, *, kind: str) -> SourceMap | None:
        try:
            source_map = SourceMap.from_json(text)
        except (CoverageError, ValueError) as e:
            logger.warning("source_map_unresolved", url=url, kind=kind, reason=str(e))
            return None
        logger.debug("source_map_resolved", url=url, kind=kind)
        return source_map

    async def _fetch_and_parse(
        self, url: str, target: str, client: httpx.AsyncClient, *, kind: str
    ) -> SourceMap | None:
        try:
            text = await self._fetch(target, client)
        except FETCH_ERRORS as e:
            # A missing implicit map is the common case, not worth a warning
            log = logger.debug if kind == "implicit" else logger.warning
            log("source_map_unresolved", url=url, kind=kind, target=target, reason=str(e))
            return None
        return self._parse(url, text, kind=kind)

    async def _fetch(self, target: str, client: httpx.AsyncClient) -> str:
        parts = split_url(target)
        if parts is None:
            return await asyncio.to_thread(Path(target).read_text, encoding="utf-8")

        scheme = parts.scheme.lower()
        if scheme == "file":
            path = Path(url2pathname(parts.path))
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        if scheme == "data":
            return decode_data_url(target)

        response = await client.get(target)
        response.raise_for_status()
        return response.text


def strip_map_comments(source: str) -> str:
    """Remove inline and linked map comments from ``source``."""
    return MAP_FILE_RE.sub("", INLINE_MAP_RE.sub("", source))
