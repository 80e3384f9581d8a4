"""Translation of engine range coverage into per-file Istanbul coverage.

Each engine range is projected onto the original file it maps to and then
recorded three ways:

- statements: one per original line. A line takes the count of the innermost
  range that spans it, or the count of the script's top-level code when no
  projected range does.
- branches: one per range of a block-coverage function.
- functions: one per root range of every function but the script's top-level
  one. Anonymous functions are named after their position.

All three add up across runs: translating runs one at a time and merging the
files gives the same counts as translating the runs' merged engine record.

Offsets and columns are UTF-16 code units throughout, which is how both the
engine and source maps count them.
"""

from __future__ import annotations

import bisect
import math
import posixpath
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import NamedTuple
from urllib.parse import urljoin
from urllib.request import url2pathname

import structlog

from jscov.core.errors import CoverageError
from jscov.coverage.engine import FunctionCoverage, RangeCoverage, ScriptCoverage
from jscov.coverage.exclusion import ExclusionFilter
from jscov.coverage.models import BranchMeta, FileCoverage, FunctionMeta, Location, Position
from jscov.coverage.paths import PathHook, PathNormalizer, is_webpack_scheme, split_url
from jscov.coverage.resolver import strip_map_comments
from jscov.coverage.sourcemap import LEAST_UPPER_BOUND, SourceMap

logger = structlog.get_logger()

SourceReader = Callable[[str], str]

_LINE_SPLIT_RE = re.compile(r"(?<=\n)")


def _utf16_len(text: str) -> int:
    # Code points outside the BMP take two UTF-16 code units
    return len(text) + sum(1 for ch in text if ord(ch) > 0xFFFF)


class SourceLine(NamedTuple):
    number: int  # 1-based
    start: int  # offset of the first character
    end: int  # offset just past the last character, newline excluded


class SourceLines:
    """Line table of a source text, in UTF-16 offsets."""

    def __init__(self, text: str) -> None:
        self.lines: list[SourceLine] = []
        position = 0
        for i, chunk in enumerate(_LINE_SPLIT_RE.split(text)):
            length = _utf16_len(chunk)
            newline = 2 if chunk.endswith("\r\n") else 1 if chunk.endswith("\n") else 0
            self.lines.append(SourceLine(i + 1, position, position + length - newline))
            position += length
        self.eof = position
        self._starts = [line.start for line in self.lines]
        self._ends = [line.end for line in self.lines]

    def overlapping(self, start: int, end: int) -> list[SourceLine]:
        """Lines touched by the offset range [start, end]."""
        first = bisect.bisect_left(self._ends, start)
        last = bisect.bisect_right(self._starts, end)
        return self.lines[first:last]

    def offset_of(self, line: int, column: int) -> int:
        """Absolute offset of (line, column), clamped to the line."""
        line = max(line, 1)
        if line > len(self.lines):
            return self.eof
        entry = self.lines[line - 1]
        return min(entry.start + column, entry.end)


# =============================================================================
# Engine ranges
# =============================================================================


class RangeRole(NamedTuple):
    """What one engine range contributes, wherever it lands."""

    count: int
    width: int  # generated length; the smaller, the more deeply nested
    branch: bool
    function: str | None  # function name, "" if anonymous, None for no entry


def _is_top_level(function: FunctionCoverage, eof: int) -> bool:
    if function.function_name or not function.ranges:
        return False
    root = function.root
    return root.start_offset <= 0 and root.end_offset >= eof


def range_roles(script: ScriptCoverage, eof: int) -> list[tuple[RangeCoverage, RangeRole]]:
    """Pair every engine range of ``script`` with its role.

    ``eof`` is the length of the script source; a nameless function spanning
    all of it is the top-level code and gets no function entry.
    """
    roles: list[tuple[RangeCoverage, RangeRole]] = []
    for function in script.functions:
        top_level = _is_top_level(function, eof)
        for i, r in enumerate(function.ranges):
            is_entry = not top_level and (i == 0 or not function.is_block_coverage)
            role = RangeRole(
                count=r.count,
                width=r.end_offset - r.start_offset,
                branch=function.is_block_coverage,
                function=function.function_name if is_entry else None,
            )
            roles.append((r, role))
    return roles


def top_level_count(script: ScriptCoverage, eof: int) -> int:
    """Count of the innermost range spanning the whole script, 0 if none."""
    best: RangeCoverage | None = None
    for function in script.functions:
        for r in function.ranges:
            if r.start_offset > 0 or r.end_offset < eof:
                continue
            width = r.end_offset - r.start_offset
            if best is None or width <= best.end_offset - best.start_offset:
                best = r
    return best.count if best is not None else 0


@dataclass
class _FileState:
    """Coverage being built for one original file."""

    lines: SourceLines
    base: int = 0
    line_counts: list[int] = field(default_factory=list)
    line_widths: list[float] = field(default_factory=list)
    functions: dict[FunctionMeta, int] = field(default_factory=dict)
    branches: dict[BranchMeta, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.line_counts = [self.base] * len(self.lines.lines)
        self.line_widths = [math.inf] * len(self.lines.lines)

    def apply(self, role: RangeRole, start: int, end: int) -> None:
        lines = self.lines.overlapping(start, end)
        if not lines:
            return
        first, last = lines[0], lines[-1]
        loc = Location(
            Position(first.number, start - first.start),
            Position(last.number, end - last.start),
        )

        if role.branch:
            branch = BranchMeta(type="branch", line=first.number, loc=loc, locations=(loc,))
            self.branches[branch] = self.branches.get(branch, 0) + role.count
        if role.function is not None:
            name = role.function or f"(anonymous_{first.number}_{loc.start.column})"
            meta = FunctionMeta(name=name, decl=loc, loc=loc, line=first.number)
            self.functions[meta] = self.functions.get(meta, 0) + role.count

        for line in lines:
            i = line.number - 1
            spans = start <= line.start and end >= line.end
            if spans and role.width <= self.line_widths[i]:
                self.line_counts[i] = role.count
                self.line_widths[i] = role.width

    def to_file_coverage(self, path: str) -> FileCoverage:
        coverage = FileCoverage(path=path)
        for i, line in enumerate(self.lines.lines):
            coverage.statement_map[i] = Location(
                Position(line.number, 0), Position(line.number, line.end - line.start)
            )
            coverage.statement_hits[i] = self.line_counts[i]
        for i, meta in enumerate(sorted(self.functions, key=FunctionMeta.sort_key)):
            coverage.fn_map[i] = meta
            coverage.function_hits[i] = self.functions[meta]
        for i, branch in enumerate(sorted(self.branches, key=BranchMeta.sort_key)):
            coverage.branch_map[i] = branch
            coverage.branch_hits[i] = [self.branches[branch]]
        return coverage


def read_source_file(raw_path: str) -> str:
    """Read an original source that the map did not embed.

    Raises:
        OSError: If ``raw_path`` does not name a readable local file.
    """
    parts = split_url(raw_path)
    if parts is None:
        path = Path(raw_path)
    elif parts.scheme.lower() == "file":
        path = Path(url2pathname(parts.path))
    else:
        raise FileNotFoundError(f"not a local file: {raw_path}")
    return path.read_text(encoding="utf-8")


class CoverageTranslator:
    """Converts one script's engine coverage into per-file coverage.

    Args:
        normalizer: Maps raw source paths to report keys.
        fallback_unmapped: Report scripts without any source map against
            their own url instead of dropping them.
        path_hook: Applied to every report key after normalization.
        read_source: Reads originals missing from ``sourcesContent``.
    """

    def __init__(
        self,
        normalizer: PathNormalizer,
        *,
        fallback_unmapped: bool = True,
        path_hook: PathHook | None = None,
        read_source: SourceReader = read_source_file,
    ) -> None:
        self._normalizer = normalizer
        self._fallback_unmapped = fallback_unmapped
        self._path_hook = path_hook
        self._read_source = read_source

    def translate(
        self,
        script: ScriptCoverage,
        source: str | None,
        source_map: SourceMap | None,
        exclusion: ExclusionFilter,
    ) -> dict[str, FileCoverage] | None:
        """Translate one script; None means the script is dropped.

        Raises:
            CoverageError: TRANSLATION_FAILED if an original source cannot be
                read, SOURCE_MAP_INVALID if the mappings cannot be decoded.
        """
        if source is None:
            return None
        if source_map is None:
            if not self._fallback_unmapped:
                return None
            files = self._translate_unmapped(script, source, exclusion)
        elif not source_map.is_usable:
            return None
        else:
            files = self._translate_mapped(script, source, source_map, exclusion)

        return {key: files[key].to_file_coverage(key) for key in sorted(files)}

    # -------------------------------------------------------------------------
    # Output keys
    # -------------------------------------------------------------------------

    def _output_key(self, raw_path: str) -> str:
        key = self._normalizer.normalize(raw_path)
        if self._path_hook is not None:
            key = self._path_hook(key)
        return key

    # -------------------------------------------------------------------------
    # Unmapped
    # -------------------------------------------------------------------------

    def _translate_unmapped(
        self, script: ScriptCoverage, source: str, exclusion: ExclusionFilter
    ) -> dict[str, _FileState]:
        if not script.url or exclusion.is_excluded(script.url):
            return {}
        logger.debug("script_unmapped", url=script.url)
        script_eof = _utf16_len(source)
        state = _FileState(
            lines=SourceLines(strip_map_comments(source)),
            base=top_level_count(script, script_eof),
        )
        eof = state.lines.eof
        for r, role in range_roles(script, script_eof):
            state.apply(role, max(0, r.start_offset), min(eof, r.end_offset))
        return {self._output_key(script.url): state}

    # -------------------------------------------------------------------------
    # Mapped
    # -------------------------------------------------------------------------

    def source_path(self, source_map: SourceMap, source: str) -> str:
        """Raw path of a map source, before normalization.

        URLs are kept. A webpack-family sourceRoot is joined as a plain path
        under the source root, embedding a ``/webpack:/`` marker the
        normalizer strips; other URL roots are URL-joined.
        """
        if split_url(source) is not None:
            return source
        root = source_map.source_root
        base = self._normalizer.source_root
        if root:
            root_parts = split_url(root)
            if root_parts is not None and not is_webpack_scheme(root_parts.scheme):
                return urljoin(root if root.endswith("/") else f"{root}/", source)
            return posixpath.join(base, root, source)
        return posixpath.join(base, source)

    def _load_originals(
        self, url: str, source_map: SourceMap, exclusion: ExclusionFilter, base: int
    ) -> tuple[dict[str, _FileState], list[_FileState | None]]:
        files: dict[str, _FileState] = {}
        by_index: list[_FileState | None] = []
        for i, source in enumerate(source_map.sources):
            raw_path = self.source_path(source_map, source)
            if exclusion.is_excluded(raw_path):
                by_index.append(None)
                continue

            key = self._output_key(raw_path)
            state = files.get(key)
            if state is None:
                text = source_map.content_of(i)
                if text is None:
                    try:
                        text = self._read_source(raw_path)
                    except (OSError, UnicodeDecodeError) as e:
                        raise CoverageError.translation_failed(
                            url, f"cannot read original {raw_path}: {e}"
                        ) from e
                state = files[key] = _FileState(lines=SourceLines(text), base=base)
            by_index.append(state)
        return files, by_index

    def _translate_mapped(
        self,
        script: ScriptCoverage,
        source: str,
        source_map: SourceMap,
        exclusion: ExclusionFilter,
    ) -> dict[str, _FileState]:
        generated = SourceLines(source)
        files, by_index = self._load_originals(
            script.url, source_map, exclusion, top_level_count(script, generated.eof)
        )
        if not files:
            return files

        for r, role in range_roles(script, generated.eof):
            projected = self._project(r, generated, source_map)
            if projected is None:
                continue
            source_index, start_pos, end_pos = projected
            state = by_index[source_index]
            if state is None:
                continue
            start = state.lines.offset_of(*start_pos)
            end = state.lines.offset_of(*end_pos)
            state.apply(role, start, end)
        return files

    @staticmethod
    def _project(
        r: RangeCoverage, generated: SourceLines, source_map: SourceMap
    ) -> tuple[int, tuple[int, int], tuple[int, int]] | None:
        """Map a generated range to (source index, (line, col), (line, col))."""
        start_offset = max(0, r.start_offset)
        end_offset = min(generated.eof, r.end_offset)
        lines = generated.overlapping(start_offset, end_offset)
        if not lines:
            return None
        first, last = lines[0], lines[-1]

        start = source_map.original_position_try_both(
            first.number, max(0, start_offset - first.start)
        )
        if start is None:
            return None
        end = source_map.original_end_position_for(last.number, end_offset - last.start)
        if end is None or end.source != start.source:
            return None
        if (end.line, end.column) == (start.line, start.column):
            end = source_map.original_position_for(
                last.number, end_offset - last.start, LEAST_UPPER_BOUND
            )
            if end is None or end.source != start.source:
                return None
            end = end._replace(column=max(end.column - 1, 0))
        return start.source, (start.line, start.column), (end.line, end.column)
