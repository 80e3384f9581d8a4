"""structlog setup for jscov.

Every event carries the id of the reporting session it belongs to. Each
configured output gets its own level and renderer; console outputs go quiet
while a spinner owns the terminal.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from jscov.config.models import LoggingConfig, LogOutputConfig

_session_id: ContextVar[str | None] = ContextVar("session_id", default=None)

# Loggers of libraries whose per-call chatter drowns out session events
_QUIET_LIBRARIES = ("httpx", "httpcore")


def get_session_id() -> str | None:
    return _session_id.get()


def set_session_id(session_id: str | None = None) -> str:
    """Set, or generate, the id of the current reporting session."""
    sid = session_id or uuid4().hex[:12]
    _session_id.set(sid)
    return sid


def clear_session_id() -> None:
    _session_id.set(None)


def _add_session_id(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    if sid := get_session_id():
        event_dict["session_id"] = sid
    return event_dict


class _SpinnerGate(logging.Filter):
    """Drops console records while a spinner is shown."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: ARG002
        from jscov.core.progress import is_console_suppressed

        return not is_console_suppressed()


def _level(name: str) -> int:
    return logging.getLevelNamesMapping().get(name.upper(), logging.INFO)


def _handler(
    output: LogOutputConfig, default_level: int, pre_chain: list[structlog.types.Processor]
) -> logging.Handler:
    handler: logging.Handler
    console = output.destination in ("stderr", "stdout")
    if console:
        handler = logging.StreamHandler(getattr(sys, output.destination))
        handler.addFilter(_SpinnerGate())
    else:
        path = Path(output.destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, mode="a")

    renderer: structlog.types.Processor
    if output.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=console and sys.stderr.isatty(), pad_event_to=0, pad_level=False
        )
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain)
    )
    handler.setLevel(_level(output.level) if output.level else default_level)
    return handler


def configure_logging(*, config: LoggingConfig | None = None, level: str = "WARNING") -> None:
    """Route structlog through stdlib handlers, one per configured output.

    Without ``config`` a single console output at ``level`` is used.
    Reconfiguring closes the handlers of the previous call.
    """
    from jscov.config.models import LoggingConfig

    if config is None:
        config = LoggingConfig(level=level)  # type: ignore[arg-type]
    default_level = _level(config.level)

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
        _add_session_id,  # type: ignore[list-item]
    ]
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(default_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfiguration must reach loggers created before it
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    for old in root.handlers:
        old.close()
    root.handlers.clear()
    root.setLevel(default_level)
    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    for output in config.outputs:
        root.addHandler(_handler(output, default_level, pre_chain))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger  # type: ignore[no-any-return]
