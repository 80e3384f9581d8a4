"""Tests for coverage summaries."""

import pytest

from jscov.config.models import Watermarks
from jscov.coverage.models import (
    BranchMeta,
    CoverageMap,
    FileCoverage,
    FunctionMeta,
    Location,
    Position,
)
from jscov.reporting.summary import (
    build_summary,
    build_text_summary,
    classify,
    compute_file_stats,
    format_line_ranges,
    percent,
    summarize,
)


def _loc(line: int) -> Location:
    return Location(Position(line, 0), Position(line, 8))


def make_file(path: str = "src/a.js") -> FileCoverage:
    """Four lines (2 hit), functions f (hit) and g (not), two branches (1 hit)."""
    fc = FileCoverage(path=path)
    for i, hits in enumerate([1, 0, 2, 0]):
        fc.statement_map[i] = _loc(i + 1)
        fc.statement_hits[i] = hits
    fc.fn_map = {
        0: FunctionMeta("f", _loc(1), _loc(1), 1),
        1: FunctionMeta("g", _loc(3), _loc(3), 3),
    }
    fc.function_hits = {0: 1, 1: 0}
    fc.branch_map = {
        0: BranchMeta("branch", 2, _loc(2), (_loc(2),)),
        1: BranchMeta("branch", 3, _loc(3), (_loc(3),)),
    }
    fc.branch_hits = {0: [2], 1: [0]}
    return fc


class TestPercent:
    def test_rounded_to_two_places(self) -> None:
        assert percent(1, 3) == 33.33

    def test_nothing_to_cover_is_full(self) -> None:
        assert percent(0, 0) == 100.0


class TestSummarize:
    def test_file_metrics(self) -> None:
        metrics = summarize(make_file())

        assert metrics["lines"] == {"total": 4, "covered": 2, "skipped": 0, "pct": 50.0}
        assert metrics["statements"]["pct"] == 50.0
        assert metrics["functions"] == {"total": 2, "covered": 1, "skipped": 0, "pct": 50.0}
        assert metrics["branches"] == {"total": 2, "covered": 1, "skipped": 0, "pct": 50.0}

    def test_build_summary_total_first(self) -> None:
        coverage_map = CoverageMap(
            files={"src/b.js": make_file("src/b.js"), "src/a.js": make_file("src/a.js")}
        )

        summary = build_summary(coverage_map)

        assert list(summary) == ["total", "src/a.js", "src/b.js"]
        assert summary["total"]["lines"]["total"] == 8
        assert summary["total"]["lines"]["covered"] == 4

    def test_empty_map(self) -> None:
        summary = build_summary(CoverageMap())

        assert summary == {"total": summarize(CoverageMap().summary)}
        assert summary["total"]["statements"]["pct"] == 100.0


class TestClassify:
    @pytest.mark.parametrize(
        ("pct", "expected"),
        [(0.0, "low"), (49.99, "low"), (50.0, "medium"), (79.9, "medium"), (80.0, "high")],
    )
    def test_default_watermarks(self, pct: float, expected: str) -> None:
        assert classify(pct, "lines", Watermarks()) == expected

    def test_metric_specific_watermarks(self) -> None:
        watermarks = Watermarks(branches=(10.0, 20.0))

        assert classify(15.0, "branches", watermarks) == "medium"
        assert classify(15.0, "lines", watermarks) == "low"


class TestTextHelpers:
    @pytest.mark.parametrize(
        ("lines", "expected"),
        [([], ""), ([4], "4"), ([1, 2, 3, 7], "1-3,7"), ([1, 3, 4, 9, 10], "1,3-4,9-10")],
    )
    def test_format_line_ranges(self, lines: list[int], expected: str) -> None:
        assert format_line_ranges(lines) == expected

    def test_compute_file_stats(self) -> None:
        stats = compute_file_stats(CoverageMap(files={"src/a.js": make_file()}))

        assert stats == [
            {
                "lines": 50.0,
                "statements": 50.0,
                "functions": 50.0,
                "branches": 50.0,
                "path": "src/a.js",
                "uncovered_lines": [2, 4],
            }
        ]

    def test_text_summary_block(self) -> None:
        text = build_text_summary(CoverageMap(files={"src/a.js": make_file()}))

        assert "Coverage summary" in text
        assert "Statements   : 50% ( 2/4 )" in text
        assert "Functions    : 50% ( 1/2 )" in text
        assert text.splitlines()[-1] == "=" * 80
