"""Console feedback for the CLI.

One line per step on stderr. A spinner replaces the line on a terminal and
degrades to a plain line in CI logs and pipes; while it spins, console log
output is held back so the two do not interleave::

    with spinner(f"Converting {pluralize(len(paths), 'artifact')}"):
        coverage_map = session.end("passed")
    status("Reports written", style="success")
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from rich.console import Console

_console = Console(stderr=True)

_PREFIXES = {
    "success": "[green]✓[/green] ",
    "info": "  ",
}

_spinning = threading.local()


def is_console_suppressed() -> bool:
    return getattr(_spinning, "active", False)


@contextmanager
def suppress_console_logs() -> Iterator[None]:
    """Hold back console log records; file outputs still receive them."""
    _spinning.active = True
    try:
        yield
    finally:
        _spinning.active = False


def _is_tty() -> bool:
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


def get_console() -> Console:
    return _console


def status(message: str, *, style: str = "info", indent: int = 0) -> None:
    _console.print(f"{' ' * indent}{_PREFIXES.get(style, '')}{message}", highlight=False)


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """Return "1 file" / "3 files" style counts."""
    word = singular if count == 1 else plural or f"{singular}s"
    return f"{count} {word}"


@contextmanager
def spinner(message: str) -> Iterator[None]:
    if not _is_tty():
        _console.print(f"{message}...", highlight=False)
        yield
        return
    with suppress_console_logs(), _console.status(f"[cyan]{message}[/cyan]", spinner="dots"):
        yield
