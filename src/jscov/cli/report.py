"""jscov report command - convert artifacts and render coverage reports."""

from pathlib import Path
from typing import Any, get_args

import click

from jscov.cli.utils import collect_artifacts
from jscov.config.loader import load_config
from jscov.config.models import ReportKind
from jscov.core.errors import JscovError
from jscov.core.logging import configure_logging
from jscov.core.progress import pluralize, spinner, status
from jscov.reporting.writers import write_reports
from jscov.session import CoverageSession


@click.command()
@click.argument("artifacts", nargs=-1, required=True, type=click.Path(exists=True, path_type=Path))
@click.option("-e", "--exclude", multiple=True, help="Glob of files to leave out (repeatable)")
@click.option(
    "--source-root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Root report paths are relative to (default: current directory)",
)
@click.option("--result-dir", help="Directory reports are written to")
@click.option(
    "-r",
    "--reporter",
    "reporters",
    multiple=True,
    type=click.Choice(get_args(ReportKind)),
    help="Report kind to render (repeatable)",
)
@click.option("--streaming", is_flag=True, help="Convert each artifact as it is submitted")
@click.pass_context
def report_command(
    ctx: click.Context,
    artifacts: tuple[Path, ...],
    exclude: tuple[str, ...],
    source_root: Path | None,
    result_dir: str | None,
    reporters: tuple[str, ...],
    streaming: bool,
) -> None:
    """Convert V8 coverage artifacts and write coverage reports.

    ARTIFACTS are JSON files or directories searched for *.json. Options
    override .jscov.yaml and JSCOV__COVERAGE__* environment variables.
    """
    overrides: dict[str, Any] = {}
    if exclude:
        overrides["exclude"] = list(exclude)
    if source_root is not None:
        overrides["source_root"] = source_root
    if result_dir is not None:
        overrides["result_dir"] = result_dir
    if reporters:
        overrides["reports"] = list(reporters)
    if streaming:
        overrides["accumulate"] = "streaming"

    try:
        config = load_config(project_root=source_root, coverage=overrides)
    except JscovError as e:
        raise click.ClickException(str(e)) from e

    obj = ctx.find_root().obj or {}
    if not obj.get("verbose"):
        configure_logging(config=config.logging)

    paths = collect_artifacts(artifacts)
    session = CoverageSession(config.coverage, write=False)
    session.begin()

    try:
        with spinner(f"Converting {pluralize(len(paths), 'artifact')}"):
            for path in paths:
                session.submit(path)
            coverage_map = session.end("passed")
        if coverage_map is None:
            raise click.ClickException("Coverage session was abandoned")
        written = write_reports(coverage_map, config.coverage)
    except JscovError as e:
        raise click.ClickException(str(e)) from e

    status(f"Coverage for {pluralize(len(coverage_map), 'file')}", style="success")
    for path in written:
        status(str(path), indent=2)
