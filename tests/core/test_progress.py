"""Tests for CLI console feedback."""

from __future__ import annotations

from unittest.mock import patch

from jscov.core.progress import (
    get_console,
    is_console_suppressed,
    pluralize,
    spinner,
    status,
    suppress_console_logs,
)


class TestStatus:
    def test_prints_message(self) -> None:
        with patch("jscov.core.progress._console") as mock_console:
            status("Test message")
            mock_console.print.assert_called_once()

    def test_success_style(self) -> None:
        with patch("jscov.core.progress._console") as mock_console:
            status("Done", style="success")
            assert "✓" in mock_console.print.call_args[0][0]

    def test_with_indent(self) -> None:
        with patch("jscov.core.progress._console") as mock_console:
            status("Indented", indent=4)
            assert "    Indented" in mock_console.print.call_args[0][0]


class TestPluralize:
    def test_singular(self) -> None:
        assert pluralize(1, "file") == "1 file"

    def test_plural(self) -> None:
        assert pluralize(3, "file") == "3 files"

    def test_custom_plural(self) -> None:
        assert pluralize(0, "entry", "entries") == "0 entries"


class TestSuppression:
    def test_flag_set_only_inside_block(self) -> None:
        assert not is_console_suppressed()
        with suppress_console_logs():
            assert is_console_suppressed()
        assert not is_console_suppressed()


class TestSpinner:
    def test_non_tty_prints_message_and_runs_block(self) -> None:
        ran = []
        with (
            patch("jscov.core.progress._is_tty", return_value=False),
            patch("jscov.core.progress._console") as mock_console,
        ):
            with spinner("Converting"):
                ran.append(True)
            assert "Converting..." in mock_console.print.call_args[0][0]
        assert ran == [True]

    def test_get_console_is_shared(self) -> None:
        assert get_console() is get_console()
