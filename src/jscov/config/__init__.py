"""Config module exports."""

from jscov.config.loader import load_config
from jscov.config.models import (
    CoverageConfig,
    JscovConfig,
    LoggingConfig,
    LogOutputConfig,
    Watermarks,
)

__all__ = [
    "load_config",
    "CoverageConfig",
    "JscovConfig",
    "LoggingConfig",
    "LogOutputConfig",
    "Watermarks",
]
