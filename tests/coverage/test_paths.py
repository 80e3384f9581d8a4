"""Tests for path normalization."""

from pathlib import Path

import pytest

from jscov.coverage.paths import (
    PathNormalizer,
    make_path_rewriter,
    normalize_path,
    split_url,
)

ROOT = "/repo"


class TestNormalizePath:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("file:///repo/src/a.js", "src/a.js"),
            ("/repo/src/a.js", "src/a.js"),
            ("/repo/src/../lib/b.js", "lib/b.js"),
            ("file:///repo/src/my%20file.js", "src/my file.js"),
            ("webpack:///./src/a.js", "src/a.js"),
            ("webpack://app/src/a.js", "src/a.js"),
            ("webpack-internal:///./src/a.js", "src/a.js"),
            ("/repo/webpack:/src/a.js", "src/a.js"),
        ],
    )
    def test_paths_under_root(self, raw: str, expected: str) -> None:
        assert normalize_path(raw, ROOT) == expected

    def test_nested_webpack_markers_keep_innermost_remainder(self) -> None:
        """Given a path with the webpack marker several times
        When normalized
        Then only the part after the last marker remains
        """
        raw = "webpack:///webpack:/lib/webpack:/src/a.js"

        assert normalize_path(raw, ROOT) == "src/a.js"

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("/elsewhere/lib.js", "../elsewhere/lib.js"),
            ("http://localhost:3000/static/app.js", "../static/app.js"),
            ("file:///other/x.js", "../other/x.js"),
        ],
    )
    def test_paths_outside_root_are_parent_relative(self, raw: str, expected: str) -> None:
        assert normalize_path(raw, ROOT) == expected

    @pytest.mark.parametrize(
        "raw",
        [
            "file:///repo/src/a.js",
            "webpack:///./src/a.js",
            "webpack:///webpack:/lib/webpack:/src/a.js",
            "http://localhost:3000/static/app.js",
            "/repo/webpack:/src/a.js",
            "webpack://app//src/a.js",
        ],
    )
    def test_result_is_never_absolute_nor_a_url(self, raw: str) -> None:
        result = normalize_path(raw, ROOT)

        assert not result.startswith("/")
        assert split_url(result) is None


class TestSplitUrl:
    def test_drive_letter_is_not_a_scheme(self) -> None:
        assert split_url("C:/repo/a.js") is None

    def test_plain_path_is_not_a_url(self) -> None:
        assert split_url("/repo/a.js") is None

    def test_url_is_split(self) -> None:
        parts = split_url("http://localhost:3000/a.js")

        assert parts is not None
        assert parts.scheme == "http"
        assert parts.path == "/a.js"


class TestPathNormalizer:
    def test_bound_to_source_root(self, tmp_path: Path) -> None:
        normalizer = PathNormalizer(tmp_path)
        url = (tmp_path / "src" / "a.js").as_uri()

        assert normalizer.source_root == tmp_path.as_posix()
        assert normalizer.normalize(url) == "src/a.js"
        assert normalizer(url) == "src/a.js"


class TestPathRewriter:
    def test_no_rewrites_gives_no_hook(self) -> None:
        assert make_path_rewriter({}) is None

    def test_longest_prefix_wins(self) -> None:
        rewrite = make_path_rewriter({"src/": "app/", "src/legacy/": "old/"})

        assert rewrite is not None
        assert rewrite("src/legacy/x.js") == "old/x.js"
        assert rewrite("src/a.js") == "app/a.js"
        assert rewrite("lib/a.js") == "lib/a.js"
