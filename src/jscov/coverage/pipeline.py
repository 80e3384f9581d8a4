"""End-to-end conversion of engine coverage into coverage maps.

Per-script failures (no source, unusable map, unreadable original) drop that
script with a log line. Merge conflicts raised by the sink propagate.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from jscov.config.models import CoverageConfig
from jscov.core.errors import CoverageError
from jscov.coverage.engine import ProcessCoverage
from jscov.coverage.exclusion import ExclusionFilter
from jscov.coverage.merge import merge_file_coverage
from jscov.coverage.models import CoverageMap, FileCoverage
from jscov.coverage.paths import PathNormalizer, make_path_rewriter
from jscov.coverage.records import extract_sources, parse
from jscov.coverage.resolver import SourceMapRecord, SourceMapResolver
from jscov.coverage.translate import CoverageTranslator

logger = structlog.get_logger()

MergeSink = Callable[[str, FileCoverage], None]


@dataclass
class ConversionStats:
    """Outcome counts of one conversion pass."""

    scripts: int = 0
    translated: int = 0
    dropped: int = 0
    failed: int = 0
    files: int = 0


def map_sink(coverage_map: CoverageMap) -> MergeSink:
    """Sink merging into a CoverageMap owned by a single caller."""

    def sink(path: str, file_coverage: FileCoverage) -> None:
        existing = coverage_map.files.get(path)
        if existing is None:
            coverage_map.files[path] = file_coverage
        else:
            coverage_map.files[path] = merge_file_coverage((existing, file_coverage))

    return sink


def convert_process_coverage(
    process: ProcessCoverage,
    sources: Mapping[str, str],
    source_maps: SourceMapRecord,
    config: CoverageConfig,
    *,
    sink: MergeSink,
) -> ConversionStats:
    """Translate every script of ``process`` and feed the results to ``sink``."""
    normalizer = PathNormalizer(config.resolved_source_root())
    path_hook = make_path_rewriter(config.path_rewrites)
    translator = CoverageTranslator(
        normalizer, fallback_unmapped=config.fallback_unmapped, path_hook=path_hook
    )
    stats = ConversionStats()

    for script in process.result:
        stats.scripts += 1
        # Exclusion decisions are memoized per script only
        exclusion = ExclusionFilter(normalizer, config.exclude, path_hook=path_hook)
        try:
            files = translator.translate(
                script, sources.get(script.url), source_maps.get(script.url), exclusion
            )
        except CoverageError as e:
            stats.failed += 1
            logger.warning(
                "script_translation_failed", url=script.url, error=e.error_name, reason=e.message
            )
            continue

        if files is None:
            stats.dropped += 1
            logger.debug(
                "script_dropped",
                url=script.url,
                has_source=script.url in sources,
                has_map=source_maps.get(script.url) is not None,
            )
            continue

        stats.translated += 1
        for path, file_coverage in files.items():
            sink(path, file_coverage)
            stats.files += 1

    logger.debug(
        "process_coverage_converted",
        scripts=stats.scripts,
        translated=stats.translated,
        dropped=stats.dropped,
        failed=stats.failed,
    )
    return stats


async def convert_records(
    process: ProcessCoverage,
    sources: Mapping[str, str],
    config: CoverageConfig,
    *,
    resolver: SourceMapResolver,
    sink: MergeSink,
) -> ConversionStats:
    """Resolve source maps for ``sources`` and convert ``process``."""
    source_maps = await resolver.resolve_all(sources)
    return convert_process_coverage(process, sources, source_maps, config, sink=sink)


async def convert_artifact(
    raw: bytes | str,
    config: CoverageConfig,
    *,
    resolver: SourceMapResolver,
    source: str | None = None,
) -> CoverageMap:
    """Convert one raw artifact into its own CoverageMap.

    Raises:
        CoverageError: ARTIFACT_MALFORMED if ``raw`` cannot be parsed.
    """
    process = parse(raw, source=source)
    sources = extract_sources(process)
    coverage_map = CoverageMap()
    await convert_records(process, sources, config, resolver=resolver, sink=map_sink(coverage_map))
    return coverage_map


def convert_payload(raw: bytes | str, settings: Mapping[str, Any]) -> dict[str, Any]:
    """Convert a serialized artifact into serialized Istanbul coverage.

    Takes and returns plain data only, so it can run in a worker process.

    Args:
        raw: Artifact JSON.
        settings: CoverageConfig fields, as produced by ``model_dump()``.

    Returns:
        ``coverage-final.json`` shaped dict.
    """
    config = CoverageConfig.model_validate(dict(settings))
    resolver = SourceMapResolver(timeout=config.fetch_timeout_sec)
    coverage_map = asyncio.run(convert_artifact(raw, config, resolver=resolver))
    return coverage_map.to_dict()
