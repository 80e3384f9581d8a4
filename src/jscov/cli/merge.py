"""jscov merge command - combine engine coverage artifacts."""

import asyncio
from pathlib import Path

import click

from jscov.cli.utils import collect_artifacts
from jscov.core.progress import pluralize, spinner, status
from jscov.coverage.records import dump, load_and_merge


@click.command()
@click.argument("artifacts", nargs=-1, required=True, type=click.Path(exists=True, path_type=Path))
@click.option(
    "-o",
    "--output",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Merged artifact to write",
)
def merge_command(artifacts: tuple[Path, ...], output: Path) -> None:
    """Merge engine-level coverage artifacts into one.

    ARTIFACTS are JSON files or directories searched for *.json. Inline
    sources are kept in the merged artifact. Malformed artifacts are skipped.
    """
    paths = collect_artifacts(artifacts)

    with spinner(f"Merging {pluralize(len(paths), 'artifact')}"):
        process, sources = asyncio.run(load_and_merge(paths))

    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(dump(process, sources), encoding="utf-8")
    except OSError as e:
        raise click.ClickException(f"Cannot write {output}: {e}") from e

    status(f"Merged {pluralize(len(process.result), 'script')} into {output}", style="success")
