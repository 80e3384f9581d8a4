"""Report writers for a final coverage map.

Each writer renders one report kind into the result directory, or to the
console for the text kinds when no ``file`` option is set.

    json          coverage-final.json
    json-summary  coverage-summary.json
    lcov          lcov.info
    text          per-file table (console)
    text-summary  totals block (console)
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
from rich.console import Console
from rich.table import Table

from jscov.config.models import CoverageConfig, Watermarks
from jscov.core.errors import ReportError
from jscov.core.progress import get_console
from jscov.coverage.models import CoverageMap, FileCoverage
from jscov.reporting.summary import (
    build_summary,
    build_text_summary,
    classify,
    compute_file_stats,
    format_line_ranges,
    summarize,
)

logger = structlog.get_logger()

_LEVEL_STYLES = {"low": "red", "medium": "yellow", "high": "green"}


@dataclass
class ReportContext:
    """Where and how one report kind is written."""

    result_dir: Path
    watermarks: Watermarks = field(default_factory=Watermarks)
    options: dict[str, Any] = field(default_factory=dict)
    console: Console | None = None

    def target(self, default_name: str) -> Path:
        return self.result_dir / self.options.get("file", default_name)

    def file_option(self) -> Path | None:
        name = self.options.get("file")
        return self.result_dir / name if name else None


def _write_text(path: Path, text: str) -> Path:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise ReportError.write_failed(str(path), str(e)) from e
    return path


# =============================================================================
# Machine-readable kinds
# =============================================================================


def write_json(coverage_map: CoverageMap, ctx: ReportContext) -> Path:
    path = ctx.target("coverage-final.json")
    return _write_text(path, json.dumps(coverage_map.to_dict()))


def write_json_summary(coverage_map: CoverageMap, ctx: ReportContext) -> Path:
    path = ctx.target("coverage-summary.json")
    return _write_text(path, json.dumps(build_summary(coverage_map)))


def lcov_record(fc: FileCoverage) -> list[str]:
    """LCOV lines for one file, ending with end_of_record."""
    out = ["TN:", f"SF:{fc.path}"]

    for idx in sorted(fc.fn_map):
        meta = fc.fn_map[idx]
        out.append(f"FN:{meta.line},{meta.name}")
    for idx in sorted(fc.fn_map):
        out.append(f"FNDA:{fc.function_hits.get(idx, 0)},{fc.fn_map[idx].name}")
    out.append(f"FNF:{fc.functions_found}")
    out.append(f"FNH:{fc.functions_hit}")

    lines = fc.lines
    for line in sorted(lines):
        out.append(f"DA:{line},{lines[line]}")
    out.append(f"LF:{fc.lines_found}")
    out.append(f"LH:{fc.lines_hit}")

    for idx in sorted(fc.branch_map):
        meta = fc.branch_map[idx]
        hits = fc.branch_hits.get(idx, [])
        # "-" marks a branch whose enclosing block never ran
        never_taken = sum(hits) == 0
        for k, count in enumerate(hits):
            out.append(f"BRDA:{meta.line},{idx},{k},{'-' if never_taken else count}")
    out.append(f"BRF:{fc.branches_found}")
    out.append(f"BRH:{fc.branches_hit}")

    out.append("end_of_record")
    return out


def write_lcov(coverage_map: CoverageMap, ctx: ReportContext) -> Path:
    path = ctx.target("lcov.info")
    lines: list[str] = []
    for p in sorted(coverage_map.files):
        lines.extend(lcov_record(coverage_map.files[p]))
    return _write_text(path, "\n".join(lines) + "\n" if lines else "")


# =============================================================================
# Text kinds
# =============================================================================


def _emit(ctx: ReportContext, renderable: Any) -> Path | None:
    """Print to the console, or to the ``file`` option when set."""
    path = ctx.file_option()
    if path is None:
        (ctx.console or get_console()).print(renderable, highlight=False)
        return None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as fh:
            Console(file=fh, width=120, color_system=None).print(renderable, highlight=False)
    except OSError as e:
        raise ReportError.write_failed(str(path), str(e)) from e
    return path


def _pct_cell(pct: float, metric: str, watermarks: Watermarks) -> str:
    style = _LEVEL_STYLES[classify(pct, metric, watermarks)]
    return f"[{style}]{pct:g}[/{style}]"


def build_text_table(coverage_map: CoverageMap, watermarks: Watermarks) -> Table:
    table = Table(show_edge=False, pad_edge=False)
    table.add_column("File", style="cyan", no_wrap=True)
    table.add_column("% Stmts", justify="right")
    table.add_column("% Branch", justify="right")
    table.add_column("% Funcs", justify="right")
    table.add_column("% Lines", justify="right")
    table.add_column("Uncovered Line #s")

    metrics = ("statements", "branches", "functions", "lines")
    totals = summarize(coverage_map.summary)
    table.add_row(
        "All files",
        *(_pct_cell(totals[m]["pct"], m, watermarks) for m in metrics),
        "",
        end_section=True,
    )
    for stats in compute_file_stats(coverage_map):
        table.add_row(
            stats["path"],
            *(_pct_cell(stats[m], m, watermarks) for m in metrics),
            format_line_ranges(stats["uncovered_lines"]),
        )
    return table


def write_text(coverage_map: CoverageMap, ctx: ReportContext) -> Path | None:
    return _emit(ctx, build_text_table(coverage_map, ctx.watermarks))


def write_text_summary(coverage_map: CoverageMap, ctx: ReportContext) -> Path | None:
    return _emit(ctx, build_text_summary(coverage_map))


ReportWriter = Callable[[CoverageMap, ReportContext], Path | None]

WRITERS: dict[str, ReportWriter] = {
    "json": write_json,
    "json-summary": write_json_summary,
    "lcov": write_lcov,
    "text": write_text,
    "text-summary": write_text_summary,
}


def write_reports(
    coverage_map: CoverageMap,
    config: CoverageConfig,
    *,
    console: Console | None = None,
) -> list[Path]:
    """Render every report kind requested by ``config``.

    Returns:
        Files written, in request order. Console output is not listed.

    Raises:
        ReportError: For an unknown kind or a failed write.
    """
    unknown = [kind for kind in config.reports if kind not in WRITERS]
    if unknown:
        raise ReportError.unknown_kind(unknown[0], sorted(WRITERS))

    result_dir = config.resolved_result_dir()
    written: list[Path] = []
    for kind in config.reports:
        ctx = ReportContext(
            result_dir=result_dir,
            watermarks=config.watermarks,
            options=dict(config.report_options.get(kind, {})),
            console=console,
        )
        path = WRITERS[kind](coverage_map, ctx)
        if path is not None:
            written.append(path)
            logger.info("report_written", kind=kind, path=str(path))

    return written
