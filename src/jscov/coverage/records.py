"""Parsing, source extraction and merging of engine-level coverage artifacts.

Merge semantics
---------------
V8 omits a nested block range whenever its count equals its parent's, so two
runs of the same function can report different range sets. Merging therefore
works on the union of range boundaries: for each range in the union, the
merged count is the sum, over inputs, of the count of the innermost input
range that encloses it. This is the same as summing the runs' piecewise
count functions, so the merge is commutative and associative. Output order
is canonical (scripts by url, functions by root range, ranges by start then
widest first) so that any merge order yields an identical record.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

import structlog

from jscov.core.errors import CoverageError
from jscov.coverage.engine import (
    FunctionCoverage,
    ProcessCoverage,
    RangeCoverage,
    ScriptCoverage,
)

logger = structlog.get_logger()

SourceText = dict[str, str]


# =============================================================================
# Parsing
# =============================================================================


def _require(condition: bool, reason: str, source: str | None) -> None:
    if not condition:
        raise CoverageError.malformed_artifact(reason, source=source)


def _parse_range(data: Any, where: str, source: str | None) -> RangeCoverage:
    _require(isinstance(data, dict), f"{where}: range must be an object", source)
    values = [data.get(key) for key in ("startOffset", "endOffset", "count")]
    _require(
        all(isinstance(v, int) and not isinstance(v, bool) for v in values),
        f"{where}: startOffset, endOffset and count must be integers",
        source,
    )
    start, end, count = values
    _require(start <= end, f"{where}: startOffset is after endOffset", source)
    return RangeCoverage(start_offset=start, end_offset=end, count=count)


def _parse_function(data: Any, where: str, source: str | None) -> FunctionCoverage:
    _require(isinstance(data, dict), f"{where}: function entry must be an object", source)
    ranges = data.get("ranges")
    _require(isinstance(ranges, list), f"{where}: 'ranges' must be a list", source)
    return FunctionCoverage(
        function_name=str(data.get("functionName") or ""),
        ranges=tuple(
            _parse_range(r, f"{where}.ranges[{i}]", source) for i, r in enumerate(ranges)
        ),
        is_block_coverage=bool(data.get("isBlockCoverage", False)),
    )


def _parse_script(data: Any, where: str, source: str | None) -> ScriptCoverage:
    _require(isinstance(data, dict), f"{where}: script entry must be an object", source)
    url = data.get("url")
    functions = data.get("functions")
    _require(isinstance(url, str), f"{where}: 'url' must be a string", source)
    _require(isinstance(functions, list), f"{where}: 'functions' must be a list", source)
    inline_source = data.get("source")
    return ScriptCoverage(
        url=url,
        functions=[
            _parse_function(f, f"{where}.functions[{i}]", source) for i, f in enumerate(functions)
        ],
        script_id=str(data.get("scriptId", "")),
        source=inline_source if isinstance(inline_source, str) else None,
    )


def parse(raw: bytes | str, *, source: str | None = None) -> ProcessCoverage:
    """Parse one raw coverage artifact.

    Args:
        raw: JSON payload of the artifact.
        source: Where the payload came from, for error details.

    Raises:
        CoverageError: ARTIFACT_MALFORMED if the payload is not JSON or does not
            have the ``{"result": [...]}`` shape.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise CoverageError.malformed_artifact(f"invalid JSON: {e}", source=source) from e

    _require(
        isinstance(data, dict) and isinstance(data.get("result"), list),
        "expected an object with a 'result' list",
        source,
    )
    return ProcessCoverage(
        result=[_parse_script(s, f"result[{i}]", source) for i, s in enumerate(data["result"])]
    )


def extract_sources(record: ProcessCoverage, into: SourceText | None = None) -> SourceText:
    """Move inline ``source`` fields out of the record.

    The first source seen for a url wins. Scripts keep no source afterwards.
    """
    sources: SourceText = into if into is not None else {}
    for script in record.result:
        if script.source is None:
            continue
        existing = sources.setdefault(script.url, script.source)
        if existing != script.source:
            logger.warning("source_text_mismatch", url=script.url)
        script.source = None
    return sources


# =============================================================================
# Merging
# =============================================================================


def _range_key(r: RangeCoverage) -> tuple[int, int]:
    return (r.start_offset, -r.end_offset)


def _count_at(function: FunctionCoverage, start: int, end: int) -> int:
    """Count of the innermost range of ``function`` enclosing [start, end)."""
    best: RangeCoverage | None = None
    for r in function.ranges:
        if r.start_offset <= start and end <= r.end_offset:
            if best is None or (r.end_offset - r.start_offset) <= (
                best.end_offset - best.start_offset
            ):
                best = r
    return best.count if best is not None else 0


def _merge_functions(functions: Sequence[FunctionCoverage]) -> FunctionCoverage:
    bounds = sorted(
        {(r.start_offset, r.end_offset) for f in functions for r in f.ranges},
        key=lambda b: (b[0], -b[1]),
    )
    ranges = tuple(
        RangeCoverage(start, end, sum(_count_at(f, start, end) for f in functions))
        for start, end in bounds
    )
    return FunctionCoverage(
        function_name=min(f.function_name for f in functions),
        ranges=ranges,
        is_block_coverage=any(f.is_block_coverage for f in functions),
    )


def _merge_scripts(scripts: Sequence[ScriptCoverage]) -> ScriptCoverage:
    by_root: dict[tuple[int, int], list[FunctionCoverage]] = {}
    for script in scripts:
        for function in script.functions:
            if not function.ranges:
                continue
            root = function.root
            by_root.setdefault((root.start_offset, root.end_offset), []).append(function)

    functions = [_merge_functions(group) for group in by_root.values()]
    functions.sort(key=lambda f: (*_range_key(f.root), f.function_name))

    return ScriptCoverage(
        url=scripts[0].url,
        functions=functions,
        script_id=min(s.script_id for s in scripts),
        source=next((s.source for s in scripts if s.source is not None), None),
    )


def merge_all(records: Iterable[ProcessCoverage]) -> ProcessCoverage:
    """Merge any number of runs into one canonical record."""
    by_url: dict[str, list[ScriptCoverage]] = {}
    for record in records:
        for script in record.result:
            by_url.setdefault(script.url, []).append(script)

    return ProcessCoverage(result=[_merge_scripts(by_url[url]) for url in sorted(by_url)])


def merge(a: ProcessCoverage, b: ProcessCoverage) -> ProcessCoverage:
    """Merge two runs; commutative and associative."""
    return merge_all((a, b))


# =============================================================================
# Artifact I/O
# =============================================================================


async def load_artifact(path: Path) -> ProcessCoverage:
    """Read and parse one artifact file.

    Raises:
        CoverageError: ARTIFACT_UNREADABLE or ARTIFACT_MALFORMED.
    """
    try:
        raw = await asyncio.to_thread(path.read_bytes)
    except OSError as e:
        raise CoverageError.unreadable_artifact(str(path), str(e)) from e
    return parse(raw, source=str(path))


async def _load_or_skip(path: Path) -> ProcessCoverage | None:
    try:
        return await load_artifact(path)
    except CoverageError as e:
        logger.warning("artifact_skipped", path=str(path), error=e.error_name, reason=e.message)
        return None


async def load_and_merge(paths: Sequence[Path]) -> tuple[ProcessCoverage, SourceText]:
    """Load every artifact, extract inline sources and merge the records.

    Malformed or unreadable artifacts are skipped with a warning.
    """
    loaded = await asyncio.gather(*(_load_or_skip(p) for p in paths))
    records = [r for r in loaded if r is not None]

    sources: SourceText = {}
    for record in records:
        extract_sources(record, into=sources)

    merged = merge_all(records)
    logger.info(
        "artifacts_merged",
        artifacts=len(paths),
        skipped=len(paths) - len(records),
        scripts=len(merged.result),
    )
    return merged, sources


def dump(record: ProcessCoverage, sources: Mapping[str, str] | None = None) -> str:
    """Serialize a record to the artifact format, optionally re-embedding sources."""
    data = record.to_dict()
    if sources:
        for entry in data["result"]:
            if (text := sources.get(entry["url"])) is not None:
                entry["source"] = text
    return json.dumps(data)
