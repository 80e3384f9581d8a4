"""CLI utilities."""

from collections.abc import Iterable
from pathlib import Path

import click


def collect_artifacts(paths: Iterable[Path]) -> list[Path]:
    """Expand directories into the ``*.json`` artifacts below them.

    Files are kept as given. Order is preserved and duplicates dropped.

    Raises:
        click.ClickException: If no artifact was found at all.
    """
    found: dict[Path, None] = {}
    for path in paths:
        if path.is_dir():
            for child in sorted(path.rglob("*.json")):
                found.setdefault(child, None)
        else:
            found.setdefault(path, None)

    if not found:
        raise click.ClickException("No coverage artifacts found")
    return list(found)
