"""Engine coverage conversion and accumulation.

This package provides:
- Engine (V8) coverage parsing and order-independent merging
- Source map resolution (inline, linked, implicit)
- Path normalization and exclusion
- Translation into Istanbul-shaped per-file coverage
- A lock-guarded accumulator for batch and streaming sessions

Usage:
    from jscov.coverage import Accumulator, SourceMapResolver, convert_artifact

    accumulator = Accumulator()
    accumulator.reset()
    coverage_map = await convert_artifact(raw, config, resolver=SourceMapResolver())
    accumulator.merge_map(coverage_map)
    final = accumulator.snapshot()
"""

from jscov.coverage.accumulator import Accumulator
from jscov.coverage.engine import (
    FunctionCoverage,
    ProcessCoverage,
    RangeCoverage,
    ScriptCoverage,
)
from jscov.coverage.exclusion import ExclusionFilter, matches_glob
from jscov.coverage.merge import merge, merge_coverage_maps, merge_file_coverage
from jscov.coverage.models import (
    BranchMeta,
    CoverageMap,
    CoverageSummary,
    FileCoverage,
    FunctionMeta,
    Location,
    Position,
)
from jscov.coverage.paths import PathNormalizer, make_path_rewriter, normalize_path
from jscov.coverage.pipeline import (
    ConversionStats,
    convert_artifact,
    convert_payload,
    convert_process_coverage,
    convert_records,
)
from jscov.coverage.records import extract_sources, load_and_merge, load_artifact, parse
from jscov.coverage.resolver import SourceMapResolver
from jscov.coverage.sourcemap import SourceMap
from jscov.coverage.translate import CoverageTranslator

__all__ = [
    # Engine records
    "FunctionCoverage",
    "ProcessCoverage",
    "RangeCoverage",
    "ScriptCoverage",
    "extract_sources",
    "load_and_merge",
    "load_artifact",
    "parse",
    # Istanbul models
    "BranchMeta",
    "CoverageMap",
    "CoverageSummary",
    "FileCoverage",
    "FunctionMeta",
    "Location",
    "Position",
    # Paths and exclusion
    "ExclusionFilter",
    "PathNormalizer",
    "make_path_rewriter",
    "matches_glob",
    "normalize_path",
    # Source maps
    "SourceMap",
    "SourceMapResolver",
    # Translation and accumulation
    "Accumulator",
    "CoverageTranslator",
    "merge",
    "merge_coverage_maps",
    "merge_file_coverage",
    # Pipeline
    "ConversionStats",
    "convert_artifact",
    "convert_payload",
    "convert_process_coverage",
    "convert_records",
]
