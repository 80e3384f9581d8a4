"""Tests for report writers."""

import io
import json
from pathlib import Path

import pytest
from rich.console import Console

from jscov.config.models import CoverageConfig
from jscov.core.errors import ErrorCode, ReportError
from jscov.coverage.models import (
    BranchMeta,
    CoverageMap,
    FileCoverage,
    FunctionMeta,
    Location,
    Position,
)
from jscov.reporting.writers import lcov_record, write_reports


def _loc(line: int) -> Location:
    return Location(Position(line, 0), Position(line, 8))


def make_file(path: str = "src/a.js") -> FileCoverage:
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


@pytest.fixture
def coverage_map() -> CoverageMap:
    return CoverageMap(files={"src/a.js": make_file()})


@pytest.fixture
def report_config(tmp_path: Path) -> CoverageConfig:
    return CoverageConfig(source_root=tmp_path.resolve(), reports=[])


def _console() -> tuple[Console, io.StringIO]:
    buffer = io.StringIO()
    return Console(file=buffer, width=120, color_system=None), buffer


class TestLcov:
    def test_record(self) -> None:
        assert lcov_record(make_file()) == [
            "TN:",
            "SF:src/a.js",
            "FN:1,f",
            "FN:3,g",
            "FNDA:1,f",
            "FNDA:0,g",
            "FNF:2",
            "FNH:1",
            "DA:1,1",
            "DA:2,0",
            "DA:3,2",
            "DA:4,0",
            "LF:4",
            "LH:2",
            "BRDA:2,0,0,2",
            "BRDA:3,1,0,-",
            "BRF:2",
            "BRH:1",
            "end_of_record",
        ]


class TestWriteReports:
    def test_machine_readable_kinds(
        self, coverage_map: CoverageMap, report_config: CoverageConfig
    ) -> None:
        config = report_config.model_copy(update={"reports": ["json", "json-summary", "lcov"]})

        written = write_reports(coverage_map, config)

        out = config.resolved_result_dir()
        assert written == [
            out / "coverage-final.json",
            out / "coverage-summary.json",
            out / "lcov.info",
        ]
        assert json.loads(written[0].read_text()) == coverage_map.to_dict()
        assert json.loads(written[1].read_text())["total"]["lines"]["pct"] == 50.0
        assert written[2].read_text().startswith("TN:\nSF:src/a.js\n")

    def test_file_option_renames_output(
        self, coverage_map: CoverageMap, report_config: CoverageConfig
    ) -> None:
        config = report_config.model_copy(
            update={"reports": ["lcov"], "report_options": {"lcov": {"file": "app.lcov"}}}
        )

        written = write_reports(coverage_map, config)

        assert written == [config.resolved_result_dir() / "app.lcov"]

    def test_text_kinds_print_to_console(
        self, coverage_map: CoverageMap, report_config: CoverageConfig
    ) -> None:
        config = report_config.model_copy(update={"reports": ["text", "text-summary"]})
        console, buffer = _console()

        written = write_reports(coverage_map, config, console=console)

        output = buffer.getvalue()
        assert written == []
        assert "All files" in output
        assert "src/a.js" in output
        assert "2,4" in output
        assert "Statements   : 50% ( 2/4 )" in output

    def test_text_with_file_option(
        self, coverage_map: CoverageMap, report_config: CoverageConfig
    ) -> None:
        config = report_config.model_copy(
            update={"reports": ["text"], "report_options": {"text": {"file": "coverage.txt"}}}
        )
        console, buffer = _console()

        written = write_reports(coverage_map, config, console=console)

        assert written == [config.resolved_result_dir() / "coverage.txt"]
        assert "src/a.js" in written[0].read_text()
        assert buffer.getvalue() == ""

    def test_unknown_kind(self, coverage_map: CoverageMap, tmp_path: Path) -> None:
        """Given a report kind no writer handles
        When reports are written
        Then REPORT_UNKNOWN_KIND is raised before anything is written
        """
        config = CoverageConfig.model_construct(source_root=tmp_path, reports=["json", "html"])

        with pytest.raises(ReportError) as exc_info:
            write_reports(coverage_map, config)

        assert exc_info.value.code == ErrorCode.REPORT_UNKNOWN_KIND
        assert not (tmp_path / "coverage").exists()

    def test_write_failure(
        self, coverage_map: CoverageMap, report_config: CoverageConfig, tmp_path: Path
    ) -> None:
        (tmp_path / "blocker").write_text("")
        config = report_config.model_copy(
            update={"reports": ["json"], "result_dir": "blocker/out"}
        )

        with pytest.raises(ReportError) as exc_info:
            write_reports(coverage_map, config)

        assert exc_info.value.code == ErrorCode.REPORT_WRITE_FAILED

    def test_empty_map(self, report_config: CoverageConfig) -> None:
        config = report_config.model_copy(update={"reports": ["json", "lcov"]})

        written = write_reports(CoverageMap(), config)

        assert json.loads(written[0].read_text()) == {}
        assert written[1].read_text() == ""
