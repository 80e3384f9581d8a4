"""Coverage summaries in Istanbul's ``coverage-summary.json`` shape.

Output schema for build_summary:
{
    "total": {
        "lines":      {"total": int, "covered": int, "skipped": 0, "pct": float},
        "statements": {...},
        "functions":  {...},
        "branches":   {...}
    },
    "<path>": {same four metrics for one file},
    ...
}

Percentages with nothing to cover are reported as 100, as Istanbul does.
"""

from typing import Any, Literal

from jscov.config.models import Watermarks
from jscov.coverage.models import CoverageMap, CoverageSummary, FileCoverage

METRICS = ("lines", "statements", "functions", "branches")

Level = Literal["low", "medium", "high"]


def percent(covered: int, total: int) -> float:
    """Coverage percentage rounded to two decimals."""
    if total <= 0:
        return 100.0
    return round(covered / total * 100.0, 2)


def _metric(covered: int, total: int) -> dict[str, Any]:
    return {"total": total, "covered": covered, "skipped": 0, "pct": percent(covered, total)}


def summarize(source: FileCoverage | CoverageSummary) -> dict[str, dict[str, Any]]:
    """The four Istanbul metrics of one file or of a whole map."""
    return {
        "lines": _metric(source.lines_hit, source.lines_found),
        "statements": _metric(source.statements_hit, source.statements_found),
        "functions": _metric(source.functions_hit, source.functions_found),
        "branches": _metric(source.branches_hit, source.branches_found),
    }


def build_summary(coverage_map: CoverageMap) -> dict[str, Any]:
    """Build the json-summary document, total first then files by path."""
    result: dict[str, Any] = {"total": summarize(coverage_map.summary)}
    for path in sorted(coverage_map.files):
        result[path] = summarize(coverage_map.files[path])
    return result


def classify(pct: float, metric: str, watermarks: Watermarks) -> Level:
    """Place a percentage below, between or above the metric's watermarks."""
    low, high = getattr(watermarks, metric)
    if pct < low:
        return "low"
    if pct >= high:
        return "high"
    return "medium"


def compute_file_stats(coverage_map: CoverageMap) -> list[dict[str, Any]]:
    """Per-file rows for the text report, sorted by path."""
    file_stats = []
    for path in sorted(coverage_map.files):
        fc = coverage_map.files[path]
        stats: dict[str, Any] = {
            metric: values["pct"] for metric, values in summarize(fc).items()
        }
        stats["path"] = path
        stats["uncovered_lines"] = fc.uncovered_lines
        file_stats.append(stats)
    return file_stats


def format_line_ranges(lines: list[int]) -> str:
    """Collapse sorted line numbers: [1, 2, 3, 7] -> "1-3,7"."""
    ranges: list[str] = []
    start = prev = None
    for line in lines:
        if start is None:
            start = prev = line
        elif line == prev + 1:
            prev = line
        else:
            ranges.append(f"{start}-{prev}" if start != prev else str(start))
            start = prev = line
    if start is not None:
        ranges.append(f"{start}-{prev}" if start != prev else str(start))
    return ",".join(ranges)


def build_text_summary(coverage_map: CoverageMap) -> str:
    """Istanbul-style text-summary block."""
    totals = summarize(coverage_map.summary)
    rows = [
        ("Statements", totals["statements"]),
        ("Branches", totals["branches"]),
        ("Functions", totals["functions"]),
        ("Lines", totals["lines"]),
    ]
    title = " Coverage summary "
    lines = ["", title.center(80, "=")]
    for label, metric in rows:
        lines.append(
            f"{label:<13}: {metric['pct']:g}% ( {metric['covered']}/{metric['total']} )"
        )
    lines.append("=" * 80)
    return "\n".join(lines)
