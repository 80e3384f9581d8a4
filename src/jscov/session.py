"""Reporting session driven by a test runner's lifecycle hooks.

    session = CoverageSession(config)
    session.begin()                    # runner start: reset the accumulator
    session.submit(artifact_path)      # after each test
    session.end("passed")              # runner end: convert, snapshot, report

In batch mode artifacts are only collected by submit() and converted
together by end(). In streaming mode every submit() starts a conversion on
a worker thread right away and end() waits for them. Both modes produce the
same coverage map.
"""

from __future__ import annotations

import asyncio
import contextvars
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

import structlog

from jscov.config.models import CoverageConfig
from jscov.core.errors import CoverageError, InternalError, JscovError
from jscov.core.logging import clear_session_id, set_session_id
from jscov.coverage.accumulator import Accumulator
from jscov.coverage.models import CoverageMap
from jscov.coverage.pipeline import convert_records
from jscov.coverage.records import extract_sources, load_and_merge, load_artifact
from jscov.coverage.resolver import SourceMapResolver
from jscov.reporting.writers import write_reports

logger = structlog.get_logger()

# Session outcomes that produce a report; anything else abandons the session
REPORTABLE_OUTCOMES = frozenset({"passed", "failed"})


class CoverageSession:
    """One reporting session over many test artifacts.

    Args:
        config: Coverage options; ``accumulate`` picks batch or streaming.
        accumulator: Running map owner. A fresh one by default.
        resolver: Source map resolver shared by all conversions. By default
            each conversion owns its HTTP client, since an
            ``httpx.AsyncClient`` is bound to the event loop it runs on.
        write: Whether end() renders the configured reports.
    """

    def __init__(
        self,
        config: CoverageConfig,
        *,
        accumulator: Accumulator | None = None,
        resolver: SourceMapResolver | None = None,
        write: bool = True,
    ) -> None:
        self.config = config
        self.accumulator = accumulator or Accumulator()
        self._resolver = resolver
        self._write = write
        self._paths: list[Path] = []
        self._futures: list[Future[None]] = []
        self._executor: ThreadPoolExecutor | None = None
        self._active = False

    @property
    def streaming(self) -> bool:
        return self.config.accumulate == "streaming"

    def _make_resolver(self) -> SourceMapResolver:
        if self._resolver is not None:
            return self._resolver
        return SourceMapResolver(timeout=self.config.fetch_timeout_sec)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def begin(self) -> str:
        """Start a session and return its id."""
        if self._active:
            self.abandon()
        self.accumulator.reset()
        self._paths = []
        self._futures = []
        if self.streaming:
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.max_workers,
                thread_name_prefix="jscov-convert",
            )
        self._active = True
        session_id = set_session_id()
        logger.info("session_started", mode=self.config.accumulate)
        return session_id

    def submit(self, artifact_path: Path) -> None:
        """Hand over one test's artifact."""
        if not self._active:
            raise CoverageError.merge_before_reset()
        if self._executor is None:
            self._paths.append(artifact_path)
            return
        # Workers log under the session id of the submitting thread
        context = contextvars.copy_context()
        self._futures.append(
            self._executor.submit(context.run, self._convert_one, artifact_path)
        )

    def end(self, outcome: str) -> CoverageMap | None:
        """Finish the session.

        Returns:
            The final coverage map, or None if the session was abandoned.

        Raises:
            CoverageError: MERGE_CONFLICT from any conversion.
            ReportError: If a report cannot be written.
        """
        if outcome not in REPORTABLE_OUTCOMES:
            logger.info("session_outcome_not_reportable", outcome=outcome)
            self.abandon()
            return None

        try:
            if self._executor is None:
                asyncio.run(self._convert_batch())
            else:
                self._drain()
            coverage_map = self.accumulator.snapshot()
            logger.info(
                "session_finished",
                artifacts=len(self._paths) or len(self._futures),
                files=len(coverage_map),
            )
            if self._write:
                write_reports(coverage_map, self.config)
            return coverage_map
        finally:
            self._shutdown(cancel=True)
            self._active = False
            clear_session_id()

    def abandon(self) -> None:
        """Drop in-flight conversions and any partial state."""
        self._shutdown(cancel=True)
        self.accumulator.reset()
        self._paths = []
        self._active = False
        logger.info("session_abandoned")
        clear_session_id()

    # -------------------------------------------------------------------------
    # Conversion
    # -------------------------------------------------------------------------

    async def _convert_batch(self) -> None:
        process, sources = await load_and_merge(self._paths)
        await convert_records(
            process,
            sources,
            self.config,
            resolver=self._make_resolver(),
            sink=self.accumulator.merge_file,
        )

    async def _convert_path(self, artifact_path: Path) -> None:
        try:
            process = await load_artifact(artifact_path)
        except CoverageError as e:
            logger.warning(
                "artifact_skipped", path=str(artifact_path), error=e.error_name, reason=e.message
            )
            return
        sources = extract_sources(process)
        await convert_records(
            process,
            sources,
            self.config,
            resolver=self._make_resolver(),
            sink=self.accumulator.merge_file,
        )

    def _convert_one(self, artifact_path: Path) -> None:
        """Worker thread entry: one artifact end to end on its own event loop."""
        asyncio.run(self._convert_path(artifact_path))

    def _drain(self) -> None:
        for future in self._futures:
            try:
                future.result()
            except JscovError:
                raise
            except Exception as e:
                raise InternalError.unexpected(f"conversion worker failed: {e}") from e

    def _shutdown(self, *, cancel: bool) -> None:
        if self._executor is None:
            return
        for future in self._futures:
            future.cancel()
        self._executor.shutdown(wait=True, cancel_futures=cancel)
        self._executor = None
        self._futures = []
