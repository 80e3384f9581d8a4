"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages,
and provides the bundle and artifact fixtures shared by the suites.
"""

import base64
import json
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local jscov package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of jscov modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("jscov"):
        del sys.modules[module_name]

from jscov.config.models import CoverageConfig  # noqa: E402

# =============================================================================
# Source map encoding
# =============================================================================

_B64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"


def encode_vlq(value: int) -> str:
    v = (-value << 1) | 1 if value < 0 else value << 1
    out = ""
    while True:
        digit = v & 0b11111
        v >>= 5
        if v:
            digit |= 0b100000
        out += _B64[digit]
        if not v:
            return out


def encode_line_mappings(lines: list[tuple[int, int] | None]) -> str:
    """Encode one column-0 segment per generated line.

    Each entry is (source index, 0-based original line), or None for an
    unmapped generated line.
    """
    encoded = []
    prev_source, prev_line = 0, 0
    for entry in lines:
        if entry is None:
            encoded.append("")
            continue
        source, line = entry
        fields = [0, source - prev_source, line - prev_line, 0]
        encoded.append("".join(encode_vlq(f) for f in fields))
        prev_source, prev_line = source, line
    return ";".join(encoded)


# =============================================================================
# Bundle fixture
# =============================================================================

A_JS = "function f() {\n  return 1;\n}\nf();\n"
LIB_JS = "function g() {}\n"

# Bundle of A_JS and LIB_JS, one generated line per original line.
# Offsets the tests use:
#   f():        0..28   (lines 1-3)
#   return 1;:  15..26  (line 2)
#   g():        29..44  (line 4)
BUNDLE_LINES = [
    ("function f() {", (0, 0)),
    ("  return 1;", (0, 1)),
    ("}", (0, 2)),
    ("function g() {}", (1, 0)),
    ("f();", (0, 3)),
]


@dataclass
class Bundle:
    url: str
    source: str
    map_data: dict[str, Any]


def inline_comment(map_data: dict[str, Any]) -> str:
    payload = base64.b64encode(json.dumps(map_data).encode()).decode()
    return f"//# sourceMappingURL=data:application/json;charset=utf-8;base64,{payload}"


@pytest.fixture
def make_bundle() -> Callable[..., Bundle]:
    """Factory for the two-module bundle, with configurable map sources."""

    def factory(
        *,
        url: str = "http://localhost:3000/static/app.js",
        sources: tuple[str, str] = (
            "webpack:///./src/a.js",
            "webpack:///./node_modules/lib/index.js",
        ),
        source_root: str | None = None,
        with_contents: bool = True,
        inline: bool = True,
    ) -> Bundle:
        map_data: dict[str, Any] = {
            "version": 3,
            "sources": list(sources),
            "names": [],
            "mappings": encode_line_mappings([m for _, m in BUNDLE_LINES] + [None]),
        }
        if with_contents:
            map_data["sourcesContent"] = [A_JS, LIB_JS]
        if source_root is not None:
            map_data["sourceRoot"] = source_root
        code = "\n".join(line for line, _ in BUNDLE_LINES)
        comment = inline_comment(map_data) if inline else "//# sourceMappingURL=app.js.map"
        return Bundle(url=url, source=f"{code}\n{comment}", map_data=map_data)

    return factory


# =============================================================================
# Project fixtures
# =============================================================================


@pytest.fixture
def source_root(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def config(source_root: Path) -> CoverageConfig:
    return CoverageConfig(source_root=source_root, reports=[])


@pytest.fixture
def write_artifact(tmp_path: Path) -> Callable[[str, dict[str, Any]], Path]:
    artifacts = tmp_path / "artifacts"
    artifacts.mkdir(exist_ok=True)

    def factory(name: str, data: dict[str, Any]) -> Path:
        path = artifacts / name
        path.write_text(json.dumps(data))
        return path

    return factory
