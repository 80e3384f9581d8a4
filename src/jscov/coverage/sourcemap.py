"""Source map (revision 3) decoding and position lookups.

See https://sourcemaps.info/spec.html. Only the fields coverage translation
needs are kept. ``mappings`` is decoded lazily on first lookup.

Lines passed to and returned from lookups are 1-based, columns 0-based,
matching the conventions of the usual JavaScript tooling.
"""

from __future__ import annotations

import bisect
import json
import sys
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, NamedTuple

from jscov.core.errors import CoverageError

# Mapping of base64 letter -> integer value.
B64 = {c: i for i, c in enumerate("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/")}

GREATEST_LOWER_BOUND = 1
LEAST_UPPER_BOUND = -1

# Column of an end position that runs to the end of its line
END_OF_LINE = sys.maxsize


def parse_vlq(segment: str) -> list[int]:
    """Parse a string of VLQ-encoded data.

    Raises:
        ValueError: On characters outside the base64 alphabet or a truncated value.
    """
    values = []

    cur, shift = 0, 0
    for c in segment:
        try:
            val = B64[c]
        except KeyError:
            raise ValueError(f"invalid base64 VLQ character {c!r}") from None
        # 5 bits of value, the high bit is the continuation.
        val, cont = val & 0b11111, val >> 5
        cur += val << shift
        shift += 5

        if not cont:
            # The low bit of the unpacked value is the sign.
            cur, sign = cur >> 1, cur & 1
            if sign:
                cur = -cur
            values.append(cur)
            cur, shift = 0, 0

    if cur or shift:
        raise ValueError("leftover cur/shift in vlq decode")

    return values


class Segment(NamedTuple):
    """One decoded mapping. Original fields are None for unmapped segments."""

    generated_column: int
    source: int | None = None
    original_line: int | None = None  # 0-based
    original_column: int | None = None
    name: int | None = None


class OriginalPosition(NamedTuple):
    source: int  # index into SourceMap.sources
    line: int  # 1-based
    column: int


def decode_mappings(mappings: str) -> list[list[Segment]]:
    """Decode ``mappings`` into per-generated-line segment lists sorted by column."""
    lines: list[list[Segment]] = []
    src_id, src_line, src_col, name_id = 0, 0, 0, 0
    for line in mappings.split(";"):
        segments: list[Segment] = []
        dst_col = 0
        for raw in line.split(","):
            if not raw:
                continue
            fields = parse_vlq(raw)
            dst_col += fields[0]
            if len(fields) >= 4:
                src_id += fields[1]
                src_line += fields[2]
                src_col += fields[3]
                name: int | None = None
                if len(fields) >= 5:
                    name_id += fields[4]
                    name = name_id
                segments.append(Segment(dst_col, src_id, src_line, src_col, name))
            elif len(fields) == 1:
                segments.append(Segment(dst_col))
            else:
                raise ValueError(f"mapping segment with {len(fields)} fields")
        segments.sort(key=lambda s: s.generated_column)
        lines.append(segments)
    return lines


@dataclass
class SourceMap:
    """A decoded source map. Empty ``mappings`` means "no usable map"."""

    sources: list[str]
    mappings: str = ""
    sources_content: list[str | None] = field(default_factory=list)
    names: list[str] = field(default_factory=list)
    source_root: str | None = None
    file: str | None = None
    version: int = 3

    @property
    def is_usable(self) -> bool:
        return bool(self.mappings)

    @classmethod
    def from_dict(cls, data: Any) -> SourceMap:
        if not isinstance(data, dict):
            raise CoverageError.invalid_source_map("expected a JSON object")
        sources = data.get("sources") or []
        if not isinstance(sources, list):
            raise CoverageError.invalid_source_map("'sources' must be a list")
        mappings = data.get("mappings") or ""
        if not isinstance(mappings, str):
            raise CoverageError.invalid_source_map("'mappings' must be a string")
        contents = data.get("sourcesContent") or []
        if not isinstance(contents, list):
            raise CoverageError.invalid_source_map("'sourcesContent' must be a list")
        names = data.get("names") or []
        if not isinstance(names, list):
            raise CoverageError.invalid_source_map("'names' must be a list")
        version = data.get("version", 3)
        if not isinstance(version, int) or isinstance(version, bool):
            raise CoverageError.invalid_source_map("'version' must be an integer")
        source_root = data.get("sourceRoot")
        return cls(
            sources=[s if isinstance(s, str) else "" for s in sources],
            mappings=mappings,
            sources_content=[c if isinstance(c, str) else None for c in contents],
            names=[n for n in names if isinstance(n, str)],
            source_root=source_root if isinstance(source_root, str) and source_root else None,
            file=data.get("file") if isinstance(data.get("file"), str) else None,
            version=version,
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> SourceMap:
        if isinstance(text, bytes):
            text = text.decode("utf-8")
        # Maps served by some dev servers start with an XSSI guard
        if text.startswith(")]}"):
            text = text.split("\n", 1)[1] if "\n" in text else ""
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CoverageError.invalid_source_map(f"invalid JSON: {e}") from e
        return cls.from_dict(data)

    def content_of(self, index: int) -> str | None:
        if index < len(self.sources_content):
            return self.sources_content[index]
        return None

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    @cached_property
    def _lines(self) -> list[list[Segment]]:
        try:
            return decode_mappings(self.mappings)
        except (ValueError, IndexError) as e:
            raise CoverageError.invalid_source_map(f"bad mappings: {e}") from e

    @cached_property
    def _line_columns(self) -> list[list[int]]:
        return [[s.generated_column for s in segments] for segments in self._lines]

    @cached_property
    def _original_columns(self) -> dict[tuple[int, int], list[int]]:
        """(source, 0-based original line) -> sorted original columns."""
        index: dict[tuple[int, int], set[int]] = {}
        for segments in self._lines:
            for s in segments:
                if s.source is None or s.original_line is None or s.original_column is None:
                    continue
                if s.source < 0 or s.original_line < 0:
                    continue
                index.setdefault((s.source, s.original_line), set()).add(s.original_column)
        return {key: sorted(cols) for key, cols in index.items()}

    def original_position_for(
        self, line: int, column: int, bias: int = GREATEST_LOWER_BOUND
    ) -> OriginalPosition | None:
        """Original position of generated (line, column), searching one line only."""
        if line < 1 or line > len(self._lines):
            return None
        segments = self._lines[line - 1]
        if not segments:
            return None
        columns = self._line_columns[line - 1]

        if bias == GREATEST_LOWER_BOUND:
            idx = bisect.bisect_right(columns, column) - 1
            if idx < 0:
                return None
        else:
            idx = bisect.bisect_left(columns, column)
            if idx >= len(segments):
                return None

        segment = segments[idx]
        if segment.source is None or segment.original_line is None:
            return None
        if not 0 <= segment.source < len(self.sources) or segment.original_line < 0:
            return None
        column = max(segment.original_column or 0, 0)
        return OriginalPosition(segment.source, segment.original_line + 1, column)

    def original_position_try_both(self, line: int, column: int) -> OriginalPosition | None:
        """Least-upper-bound lookup falling back to greatest-lower-bound.

        If the first mapping of the line points to a later original line than
        the match, the line-start mapping wins; transpilers tend to emit
        mid-line mappings for hoisted helpers that point backwards.
        """
        original = self.original_position_for(line, column, LEAST_UPPER_BOUND)
        if original is None:
            original = self.original_position_for(line, column, GREATEST_LOWER_BOUND)
        if original is None:
            return None
        line_start = self.original_position_for(line, 0, GREATEST_LOWER_BOUND)
        if line_start is not None and line_start.line > original.line:
            return line_start
        return original

    def original_end_position_for(self, line: int, column: int) -> OriginalPosition | None:
        """Original position of the end of a generated range ending at (line, column).

        Finds the mapping covering the character just before the end, then
        ends the original range where the next mapping on the same original
        line starts. Without one the range runs to the end of the original
        line, reported as column END_OF_LINE.
        """
        before = self.original_position_try_both(line, max(column - 1, 0))
        if before is None:
            return None
        columns = self._original_columns.get((before.source, before.line - 1), [])
        idx = bisect.bisect_right(columns, before.column)
        if idx < len(columns):
            return OriginalPosition(before.source, before.line, columns[idx])
        return OriginalPosition(before.source, before.line, END_OF_LINE)
