"""Lock-guarded owner of a session's running coverage map."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

import structlog

from jscov.core.errors import CoverageError
from jscov.coverage.models import CoverageMap, FileCoverage
from jscov.coverage.merge import merge_file_coverage

logger = structlog.get_logger()


@dataclass
class Accumulator:
    """
    Running CoverageMap shared by concurrent conversions.

    Lifecycle:
    - reset() starts a session (mandatory before the first merge)
    - merge_file()/merge_map() may be called from any thread
    - snapshot() once all merges have completed
    """

    _files: dict[str, FileCoverage] | None = field(default=None, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def reset(self) -> None:
        """Discard any previous state and start an empty map."""
        with self._lock:
            dropped = len(self._files) if self._files else 0
            self._files = {}
        if dropped:
            logger.debug("accumulator_reset", dropped_files=dropped)

    def merge_file(self, path: str, file_coverage: FileCoverage) -> None:
        """Merge one file's coverage into the running map.

        Raises:
            CoverageError: MERGE_BEFORE_RESET if reset() was never called,
                MERGE_CONFLICT if the statement maps disagree.
        """
        with self._lock:
            if self._files is None:
                raise CoverageError.merge_before_reset()
            existing = self._files.get(path)
            if existing is None:
                self._files[path] = file_coverage.copy()
            else:
                self._files[path] = merge_file_coverage((existing, file_coverage))

    def merge_map(self, coverage_map: CoverageMap) -> None:
        for path in sorted(coverage_map.files):
            self.merge_file(path, coverage_map.files[path])

    def snapshot(self) -> CoverageMap:
        """Deep copy of the current map.

        Raises:
            CoverageError: MERGE_BEFORE_RESET if reset() was never called.
        """
        with self._lock:
            if self._files is None:
                raise CoverageError.merge_before_reset()
            return CoverageMap(files={path: fc.copy() for path, fc in self._files.items()})
