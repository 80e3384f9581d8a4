"""Istanbul-shaped coverage data model.

File-centric model keyed by normalized, root-relative path. Each file carries
three location maps (statements, functions, branches) with parallel hit-count
tables, exactly like Istanbul's ``coverage-final.json``:

{
  "src/app.js": {
    "path": "src/app.js",
    "statementMap": { "0": {"start": {"line": 1, "column": 0}, "end": ...}, ... },
    "s": { "0": 1, ... },
    "fnMap": { "0": {"name": "foo", "decl": {...}, "loc": {...}, "line": 1}, ... },
    "f": { "0": 1, ... },
    "branchMap": { "0": {"type": "branch", "line": 5, "loc": {...}, "locations": [...]}, ... },
    "b": { "0": [1], ... }
  }
}

Lines are 1-based, columns 0-based.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True, order=True)
class Position:
    line: int
    column: int

    def to_dict(self) -> dict[str, int]:
        return {"line": self.line, "column": self.column}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Position:
        # Istanbul writes column null for "end of line"
        column = data.get("column")
        return cls(line=int(data["line"]), column=int(column) if column is not None else 0)


@dataclass(frozen=True, slots=True, order=True)
class Location:
    start: Position
    end: Position

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start.to_dict(), "end": self.end.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Location:
        return cls(start=Position.from_dict(data["start"]), end=Position.from_dict(data["end"]))


@dataclass(frozen=True, slots=True)
class FunctionMeta:
    """Function declaration entry of a file's fnMap."""

    name: str
    decl: Location
    loc: Location
    line: int

    def sort_key(self) -> tuple[Location, Location, str]:
        return (self.decl, self.loc, self.name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "decl": self.decl.to_dict(),
            "loc": self.loc.to_dict(),
            "line": self.line,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FunctionMeta:
        loc = Location.from_dict(data["loc"])
        decl = Location.from_dict(data["decl"]) if "decl" in data else loc
        return cls(
            name=str(data.get("name", "")),
            decl=decl,
            loc=loc,
            line=int(data.get("line", decl.start.line)),
        )


@dataclass(frozen=True, slots=True)
class BranchMeta:
    """Branch entry of a file's branchMap; one hit counter per location."""

    type: str
    line: int
    loc: Location
    locations: tuple[Location, ...]

    def sort_key(self) -> tuple[Location, tuple[Location, ...], str]:
        return (self.loc, self.locations, self.type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "line": self.line,
            "loc": self.loc.to_dict(),
            "locations": [loc.to_dict() for loc in self.locations],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BranchMeta:
        locations = tuple(Location.from_dict(loc) for loc in data.get("locations", []))
        loc = Location.from_dict(data["loc"]) if "loc" in data else locations[0]
        return cls(
            type=str(data.get("type", "branch")),
            line=int(data.get("line", loc.start.line)),
            loc=loc,
            locations=locations,
        )


@dataclass(slots=True)
class FileCoverage:
    """Coverage data for a single original source file.

    Maps are keyed by construct index. Two FileCoverage values for the same
    path can only be merged when their statement maps are identical.
    """

    path: str  # normalized, root-relative path
    statement_map: dict[int, Location] = field(default_factory=dict)
    statement_hits: dict[int, int] = field(default_factory=dict)
    fn_map: dict[int, FunctionMeta] = field(default_factory=dict)
    function_hits: dict[int, int] = field(default_factory=dict)
    branch_map: dict[int, BranchMeta] = field(default_factory=dict)
    branch_hits: dict[int, list[int]] = field(default_factory=dict)

    @property
    def statements_found(self) -> int:
        return len(self.statement_map)

    @property
    def statements_hit(self) -> int:
        return sum(1 for hits in self.statement_hits.values() if hits > 0)

    @property
    def statement_rate(self) -> float:
        """Fraction of statements covered (0.0 to 1.0)."""
        if not self.statement_map:
            return 0.0
        return self.statements_hit / self.statements_found

    @property
    def lines(self) -> dict[int, int]:
        """Line number → hit count, derived from statements (max per start line)."""
        lines: dict[int, int] = {}
        for idx, loc in self.statement_map.items():
            hits = self.statement_hits.get(idx, 0)
            line = loc.start.line
            if lines.get(line, -1) < hits:
                lines[line] = hits
        return lines

    @property
    def lines_found(self) -> int:
        return len(self.lines)

    @property
    def lines_hit(self) -> int:
        return sum(1 for hits in self.lines.values() if hits > 0)

    @property
    def line_rate(self) -> float:
        lines = self.lines
        if not lines:
            return 0.0
        return sum(1 for hits in lines.values() if hits > 0) / len(lines)

    @property
    def uncovered_lines(self) -> list[int]:
        """Sorted list of line numbers with zero hits."""
        return sorted(line for line, hits in self.lines.items() if hits == 0)

    @property
    def branches_found(self) -> int:
        """Total number of branch locations."""
        return sum(len(hits) for hits in self.branch_hits.values())

    @property
    def branches_hit(self) -> int:
        return sum(1 for hits in self.branch_hits.values() for h in hits if h > 0)

    @property
    def branch_rate(self) -> float:
        if not self.branches_found:
            return 0.0
        return self.branches_hit / self.branches_found

    @property
    def functions_found(self) -> int:
        return len(self.fn_map)

    @property
    def functions_hit(self) -> int:
        return sum(1 for hits in self.function_hits.values() if hits > 0)

    @property
    def function_rate(self) -> float:
        if not self.fn_map:
            return 0.0
        return self.functions_hit / self.functions_found

    def copy(self) -> FileCoverage:
        return FileCoverage(
            path=self.path,
            statement_map=dict(self.statement_map),
            statement_hits=dict(self.statement_hits),
            fn_map=dict(self.fn_map),
            function_hits=dict(self.function_hits),
            branch_map=dict(self.branch_map),
            branch_hits={k: list(v) for k, v in self.branch_hits.items()},
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to Istanbul's per-file JSON shape."""
        return {
            "path": self.path,
            "statementMap": {str(k): v.to_dict() for k, v in self.statement_map.items()},
            "s": {str(k): v for k, v in self.statement_hits.items()},
            "fnMap": {str(k): v.to_dict() for k, v in self.fn_map.items()},
            "f": {str(k): v for k, v in self.function_hits.items()},
            "branchMap": {str(k): v.to_dict() for k, v in self.branch_map.items()},
            "b": {str(k): list(v) for k, v in self.branch_hits.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, path: str | None = None) -> FileCoverage:
        """Parse Istanbul's per-file JSON shape."""
        return cls(
            path=path if path is not None else str(data["path"]),
            statement_map={
                int(k): Location.from_dict(v) for k, v in data.get("statementMap", {}).items()
            },
            statement_hits={int(k): int(v) for k, v in data.get("s", {}).items()},
            fn_map={int(k): FunctionMeta.from_dict(v) for k, v in data.get("fnMap", {}).items()},
            function_hits={int(k): int(v) for k, v in data.get("f", {}).items()},
            branch_map={
                int(k): BranchMeta.from_dict(v) for k, v in data.get("branchMap", {}).items()
            },
            branch_hits={int(k): [int(h) for h in v] for k, v in data.get("b", {}).items()},
        )


@dataclass(frozen=True, slots=True)
class CoverageSummary:
    """Aggregate coverage statistics.

    Immutable summary snapshot computed from a CoverageMap.
    """

    statements_found: int
    statements_hit: int
    branches_found: int
    branches_hit: int
    functions_found: int
    functions_hit: int
    lines_found: int
    lines_hit: int

    @staticmethod
    def _rate(hit: int, found: int) -> float:
        return hit / found if found > 0 else 1.0

    @property
    def statement_rate(self) -> float:
        return self._rate(self.statements_hit, self.statements_found)

    @property
    def branch_rate(self) -> float:
        return self._rate(self.branches_hit, self.branches_found)

    @property
    def function_rate(self) -> float:
        return self._rate(self.functions_hit, self.functions_found)

    @property
    def line_rate(self) -> float:
        return self._rate(self.lines_hit, self.lines_found)

    @classmethod
    def of(cls, files: list[FileCoverage]) -> CoverageSummary:
        return cls(
            statements_found=sum(f.statements_found for f in files),
            statements_hit=sum(f.statements_hit for f in files),
            branches_found=sum(f.branches_found for f in files),
            branches_hit=sum(f.branches_hit for f in files),
            functions_found=sum(f.functions_found for f in files),
            functions_hit=sum(f.functions_hit for f in files),
            lines_found=sum(f.lines_found for f in files),
            lines_hit=sum(f.lines_hit for f in files),
        )


@dataclass(slots=True)
class CoverageMap:
    """Coverage for many files, keyed by normalized path."""

    files: dict[str, FileCoverage] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.files)

    def __contains__(self, path: object) -> bool:
        return path in self.files

    @property
    def summary(self) -> CoverageSummary:
        """Compute aggregate summary across all files."""
        return CoverageSummary.of(list(self.files.values()))

    def copy(self) -> CoverageMap:
        return CoverageMap(files={path: fc.copy() for path, fc in self.files.items()})

    def to_dict(self) -> dict[str, Any]:
        return {path: self.files[path].to_dict() for path in sorted(self.files)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CoverageMap:
        return cls(files={path: FileCoverage.from_dict(fc, path=path) for path, fc in data.items()})
