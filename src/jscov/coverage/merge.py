"""Coverage map merging with summed-hit semantics.

When merging coverage from several runs of the same code, hits add up:

- statement[i] = sum(statement[i] across all inputs)
- function[f] = sum(function[f].hits across all inputs), keyed by location
- branch[b][k] = sum(branch[b][k] across all inputs), keyed by location

Statement maps describe the file's structure and must be identical; a
mismatch means the file changed between runs and is reported as a merge
conflict. Function and branch maps are derived from which engine ranges each
run reported, which legitimately varies, so they are unioned by location and
re-indexed in sorted order.

The engine leaves out a nested block whose count equals its parent's. A
branch missing from one input therefore counts, for that input, as the
innermost branch or function of that input enclosing it. Every step is
commutative and associative.
"""

from collections.abc import Iterable

from jscov.core.errors import CoverageError
from jscov.coverage.models import BranchMeta, CoverageMap, FileCoverage, FunctionMeta, Location


def _sum_branch_hits(a: list[int], b: list[int]) -> list[int]:
    if len(a) < len(b):
        a, b = b, a
    return [x + (b[i] if i < len(b) else 0) for i, x in enumerate(a)]


def _nesting_key(loc: Location) -> tuple[int, int, int, int]:
    # Among locations enclosing the same span, the innermost sorts last
    return (loc.start.line, loc.start.column, -loc.end.line, -loc.end.column)


def enclosing_count(fc: FileCoverage, loc: Location) -> int:
    """Count of the innermost branch or function of ``fc`` enclosing ``loc``.

    Returns 0 when nothing in ``fc`` encloses it.
    """
    candidates = [(meta.loc, sum(fc.branch_hits.get(i, []))) for i, meta in fc.branch_map.items()]
    candidates += [(meta.loc, fc.function_hits.get(i, 0)) for i, meta in fc.fn_map.items()]

    best: tuple[tuple[int, int, int, int], int] | None = None
    for outer, count in candidates:
        if outer.start <= loc.start and loc.end <= outer.end:
            key = _nesting_key(outer)
            if best is None or key > best[0]:
                best = (key, count)
    return best[1] if best is not None else 0


def merge_file_coverage(files: Iterable[FileCoverage]) -> FileCoverage:
    """Merge multiple FileCoverage objects for the same file.

    Args:
        files: FileCoverage objects to merge (must have same path).

    Returns:
        A new FileCoverage with summed hits; the inputs are not modified.

    Raises:
        CoverageError: MERGE_CONFLICT if the statement maps differ.
    """
    files_list = list(files)
    if not files_list:
        raise ValueError("Cannot merge empty file coverage list")

    first = files_list[0]
    path = first.path

    # Statements: identical structure, summed hits
    statement_hits = dict(first.statement_hits)
    for fc in files_list[1:]:
        if fc.statement_map != first.statement_map:
            raise CoverageError.merge_conflict(path, "statementMap")
        for idx, hits in fc.statement_hits.items():
            statement_hits[idx] = statement_hits.get(idx, 0) + hits

    # Functions keyed by location
    function_hits: dict[FunctionMeta, int] = {}
    for fc in files_list:
        for idx, meta in fc.fn_map.items():
            function_hits[meta] = function_hits.get(meta, 0) + fc.function_hits.get(idx, 0)

    # Branches keyed by location, missing ones inherited from their encloser
    all_branches = {meta for fc in files_list for meta in fc.branch_map.values()}
    branch_hits: dict[BranchMeta, list[int]] = {}
    for fc in files_list:
        present = {
            meta: fc.branch_hits.get(idx, [0] * len(meta.locations))
            for idx, meta in fc.branch_map.items()
        }
        for meta in all_branches:
            hits = present.get(meta)
            if hits is None:
                hits = [enclosing_count(fc, meta.loc)] * len(meta.locations)
            existing = branch_hits.get(meta)
            branch_hits[meta] = list(hits) if existing is None else _sum_branch_hits(existing, hits)

    result = FileCoverage(
        path=path,
        statement_map=dict(first.statement_map),
        statement_hits=statement_hits,
    )
    for i, meta in enumerate(sorted(function_hits, key=FunctionMeta.sort_key)):
        result.fn_map[i] = meta
        result.function_hits[i] = function_hits[meta]
    for i, meta in enumerate(sorted(branch_hits, key=BranchMeta.sort_key)):
        result.branch_map[i] = meta
        result.branch_hits[i] = branch_hits[meta]
    return result


def merge_coverage_maps(maps: Iterable[CoverageMap]) -> CoverageMap:
    """Merge multiple CoverageMap objects.

    Files present in several maps are merged; files present in only one are
    copied as-is.
    """
    files_by_path: dict[str, list[FileCoverage]] = {}
    for coverage_map in maps:
        for path, fc in coverage_map.files.items():
            files_by_path.setdefault(path, []).append(fc)

    merged_files: dict[str, FileCoverage] = {}
    for path in sorted(files_by_path):
        file_list = files_by_path[path]
        if len(file_list) == 1:
            merged_files[path] = file_list[0].copy()
        else:
            merged_files[path] = merge_file_coverage(file_list)

    return CoverageMap(files=merged_files)


def merge(*maps: CoverageMap) -> CoverageMap:
    """Convenience function to merge coverage maps as varargs."""
    return merge_coverage_maps(maps)
