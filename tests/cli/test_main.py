"""Tests for the jscov report and merge commands."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from jscov.cli.main import cli

runner = CliRunner()

ArtifactWriter = Callable[[str, dict[str, Any]], Path]


def _artifact(url: str, source: str, f_count: int) -> dict[str, Any]:
    return {
        "result": [
            {
                "scriptId": "9",
                "url": url,
                "source": source,
                "functions": [
                    {
                        "functionName": "f",
                        "isBlockCoverage": False,
                        "ranges": [{"startOffset": 0, "endOffset": 28, "count": f_count}],
                    }
                ],
            }
        ]
    }


@pytest.fixture(autouse=True)
def no_global_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("jscov.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "global.yaml")


@pytest.fixture
def artifact_dir(make_bundle: Callable[..., Any], write_artifact: ArtifactWriter) -> Path:
    bundle = make_bundle()
    write_artifact("run-1.json", _artifact(bundle.url, bundle.source, 3))
    return write_artifact("run-2.json", _artifact(bundle.url, bundle.source, 5)).parent


class TestCli:
    def test_version(self) -> None:
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestReportCommand:
    @pytest.mark.parametrize("mode", [[], ["--streaming"]])
    def test_writes_istanbul_json(
        self, artifact_dir: Path, source_root: Path, mode: list[str]
    ) -> None:
        """Given a directory of two runs where f ran 3 and 5 times
        When reported as json
        Then coverage-final.json holds src/a.js with f at 8
        """
        result = runner.invoke(
            cli,
            ["report", str(artifact_dir), "--source-root", str(source_root), "-r", "json", *mode],
        )

        assert result.exit_code == 0, result.output
        final = json.loads((source_root / "coverage" / "coverage-final.json").read_text())
        assert list(final) == ["src/a.js"]
        assert final["src/a.js"]["f"] == {"0": 8}

    def test_exclude_and_result_dir(self, artifact_dir: Path, source_root: Path) -> None:
        result = runner.invoke(
            cli,
            [
                "report",
                str(artifact_dir),
                "--source-root",
                str(source_root),
                "--result-dir",
                "out",
                "-r",
                "json",
                "-e",
                "src/**",
            ],
        )

        assert result.exit_code == 0, result.output
        assert json.loads((source_root / "out" / "coverage-final.json").read_text()) == {}

    def test_project_config_is_read(self, artifact_dir: Path, source_root: Path) -> None:
        (source_root / ".jscov.yaml").write_text(
            "coverage:\n  reports: [lcov]\n  result_dir: reports\n"
        )

        result = runner.invoke(
            cli, ["report", str(artifact_dir), "--source-root", str(source_root)]
        )

        assert result.exit_code == 0, result.output
        assert "SF:src/a.js" in (source_root / "reports" / "lcov.info").read_text()

    def test_no_artifacts(self, tmp_path: Path, source_root: Path) -> None:
        empty = tmp_path / "empty"
        empty.mkdir()

        result = runner.invoke(cli, ["report", str(empty), "--source-root", str(source_root)])

        assert result.exit_code == 1
        assert "No coverage artifacts found" in result.output

    def test_unknown_reporter_rejected(self, artifact_dir: Path) -> None:
        result = runner.invoke(cli, ["report", str(artifact_dir), "-r", "html"])

        assert result.exit_code == 2


class TestMergeCommand:
    def test_merges_into_one_artifact(self, artifact_dir: Path, tmp_path: Path) -> None:
        output = tmp_path / "merged" / "coverage.json"

        result = runner.invoke(cli, ["merge", str(artifact_dir), "-o", str(output)])

        assert result.exit_code == 0, result.output
        merged = json.loads(output.read_text())
        script = merged["result"][0]
        assert script["functions"][0]["ranges"][0]["count"] == 8
        assert "source" in script

    def test_output_required(self, artifact_dir: Path) -> None:
        result = runner.invoke(cli, ["merge", str(artifact_dir)])

        assert result.exit_code == 2
