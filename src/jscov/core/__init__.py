"""Core module exports."""

from jscov.core.errors import (
    ConfigError,
    CoverageError,
    ErrorCode,
    InternalError,
    JscovError,
    ReportError,
)
from jscov.core.logging import (
    clear_session_id,
    configure_logging,
    get_logger,
    get_session_id,
    set_session_id,
)
from jscov.core.progress import spinner, status

__all__ = [
    # Errors
    "ConfigError",
    "CoverageError",
    "ErrorCode",
    "InternalError",
    "JscovError",
    "ReportError",
    # Logging
    "clear_session_id",
    "configure_logging",
    "get_logger",
    "get_session_id",
    "set_session_id",
    # Progress
    "spinner",
    "status",
]
