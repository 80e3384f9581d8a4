"""Engine-level (V8) coverage records.

Mirrors the JSON that V8's precise coverage (and Playwright's
``page.coverage.stopJSCoverage()``) produces:

{
  "result": [
    {
      "scriptId": "17",
      "url": "http://localhost:3000/static/app.js",
      "source": "...",              // optional, stripped after extraction
      "functions": [
        {
          "functionName": "main",
          "isBlockCoverage": true,
          "ranges": [{"startOffset": 0, "endOffset": 120, "count": 1}, ...]
        }
      ]
    }
  ]
}

Offsets are UTF-16 code unit offsets into the script source. A function's
first range is its root range; the remaining ranges are nested blocks whose
count differs from their parent's.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class RangeCoverage:
    start_offset: int
    end_offset: int
    count: int

    def contains(self, other: RangeCoverage) -> bool:
        return self.start_offset <= other.start_offset and other.end_offset <= self.end_offset

    def to_dict(self) -> dict[str, int]:
        return {"startOffset": self.start_offset, "endOffset": self.end_offset, "count": self.count}


@dataclass(frozen=True, slots=True)
class FunctionCoverage:
    function_name: str
    ranges: tuple[RangeCoverage, ...]
    is_block_coverage: bool = False

    @property
    def root(self) -> RangeCoverage:
        return self.ranges[0]

    def to_dict(self) -> dict[str, Any]:
        return {
            "functionName": self.function_name,
            "ranges": [r.to_dict() for r in self.ranges],
            "isBlockCoverage": self.is_block_coverage,
        }


@dataclass(slots=True)
class ScriptCoverage:
    """Coverage of one script. ``source`` is only set until extraction."""

    url: str
    functions: list[FunctionCoverage] = field(default_factory=list)
    script_id: str = ""
    source: str | None = None

    def to_dict(self, *, include_source: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "scriptId": self.script_id,
            "url": self.url,
            "functions": [f.to_dict() for f in self.functions],
        }
        if include_source and self.source is not None:
            data["source"] = self.source
        return data


@dataclass(slots=True)
class ProcessCoverage:
    """One engine run's coverage: an ordered sequence of scripts."""

    result: list[ScriptCoverage] = field(default_factory=list)

    @property
    def urls(self) -> list[str]:
        return [script.url for script in self.result]

    def to_dict(self, *, include_sources: bool = False) -> dict[str, Any]:
        return {"result": [s.to_dict(include_source=include_sources) for s in self.result]}
