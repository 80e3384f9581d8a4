"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (JSCOV__SECTION__KEY)
3. Project YAML (.jscov.yaml)
4. Global YAML (~/.config/jscov/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    JSCOV__<SECTION>__<KEY>=<VALUE>

Examples:
    JSCOV__LOGGING__LEVEL=DEBUG
    JSCOV__COVERAGE__RESULT_DIR=out/coverage
    JSCOV__COVERAGE__EXCLUDE='["**/generated/*.js"]'
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

ReportKind = Literal["json", "json-summary", "lcov", "text", "text-summary"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        JSCOV__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="WARNING",
        description="Root log level. DEBUG logs every resolved map and dropped script.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class Watermarks(BaseModel):
    """Low/high thresholds (percent) used by text reports to color results.

    Consumed for display only; nothing is gated on them.
    """

    statements: tuple[float, float] = (50.0, 80.0)
    branches: tuple[float, float] = (50.0, 80.0)
    functions: tuple[float, float] = (50.0, 80.0)
    lines: tuple[float, float] = (50.0, 80.0)

    @model_validator(mode="after")
    def validate_order(self) -> "Watermarks":
        for name in ("statements", "branches", "functions", "lines"):
            low, high = getattr(self, name)
            if not (0.0 <= low <= high <= 100.0):
                raise ValueError(f"Watermark '{name}' must satisfy 0 <= low <= high <= 100")
        return self


class CoverageConfig(BaseModel):
    """Coverage conversion and reporting options.

    Env vars:
        JSCOV__COVERAGE__EXCLUDE: JSON list of globs, matched against root-relative paths
        JSCOV__COVERAGE__SOURCE_ROOT: Directory report paths are relative to
        JSCOV__COVERAGE__RESULT_DIR: Directory reports are written to
        JSCOV__COVERAGE__ACCUMULATE: "batch" or "streaming"
    """

    exclude: list[str] = Field(
        default_factory=list,
        description="Shell globs of files to leave out; * stays in one directory, ** spans them.",
    )
    source_root: Path | None = Field(
        default=None,
        description="Root that report paths are made relative to. Default: current directory.",
    )
    result_dir: str = Field(
        default="coverage",
        description="Report output directory, relative to the source root unless absolute.",
    )
    reports: list[ReportKind] = Field(
        default_factory=lambda: ["text-summary"],
        description="Report kinds to render at the end of a session.",
    )
    report_options: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description='Per-kind options, e.g. {"lcov": {"file": "coverage.lcov"}}.',
    )
    watermarks: Watermarks = Field(default_factory=Watermarks)
    path_rewrites: dict[str, str] = Field(
        default_factory=dict,
        description="Prefix rewrites applied to normalized report paths (longest prefix wins).",
    )
    accumulate: Literal["batch", "streaming"] = Field(
        default="batch",
        description="batch: convert once at session end. "
        "streaming: convert each artifact as soon as it is submitted.",
    )
    max_workers: int = Field(
        default=4,
        description="Parallel artifact conversions in streaming mode.",
    )
    fallback_unmapped: bool = Field(
        default=True,
        description="Report scripts without any source map against their own URL.",
    )
    fetch_timeout_sec: float | None = Field(
        default=30.0,
        description="Timeout for source map HTTP fetches. None disables the timeout.",
    )

    @field_validator("exclude", mode="before")
    @classmethod
    def coerce_exclude(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_workers must be >= 1, got {v}")
        return v

    def resolved_source_root(self) -> Path:
        return (self.source_root or Path.cwd()).resolve()

    def resolved_result_dir(self) -> Path:
        return self.resolved_source_root() / self.result_dir


class JscovConfig(BaseModel):
    """Root configuration for jscov."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    coverage: CoverageConfig = Field(default_factory=CoverageConfig)
