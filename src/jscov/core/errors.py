"""jscov error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Artifact
- 4xxx: Source map
- 5xxx: Translation
- 6xxx: Merge
- 7xxx: Report
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Artifact (3xxx)
    ARTIFACT_MALFORMED = 3001
    ARTIFACT_UNREADABLE = 3002

    # Source map (4xxx)
    SOURCE_MAP_INVALID = 4001

    # Translation (5xxx)
    TRANSLATION_FAILED = 5001

    # Merge (6xxx)
    MERGE_CONFLICT = 6001
    MERGE_BEFORE_RESET = 6002

    # Report (7xxx)
    REPORT_UNKNOWN_KIND = 7001
    REPORT_WRITE_FAILED = 7002

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(frozen=True, slots=True)
class JscovError(Exception):
    """Base error with structured context."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'MERGE_CONFLICT')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(JscovError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class CoverageError(JscovError):
    """Errors raised while loading, converting or merging coverage."""

    @classmethod
    def malformed_artifact(cls, reason: str, *, source: str | None = None) -> "CoverageError":
        return cls(
            code=ErrorCode.ARTIFACT_MALFORMED,
            message=f"Malformed coverage artifact: {reason}",
            details={"source": source, "reason": reason},
        )

    @classmethod
    def unreadable_artifact(cls, path: str, reason: str) -> "CoverageError":
        return cls(
            code=ErrorCode.ARTIFACT_UNREADABLE,
            message=f"Cannot read coverage artifact {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_source_map(cls, reason: str) -> "CoverageError":
        return cls(
            code=ErrorCode.SOURCE_MAP_INVALID,
            message=f"Invalid source map: {reason}",
            details={"reason": reason},
        )

    @classmethod
    def translation_failed(cls, url: str, reason: str) -> "CoverageError":
        return cls(
            code=ErrorCode.TRANSLATION_FAILED,
            message=f"Cannot translate coverage for {url}: {reason}",
            details={"url": url, "reason": reason},
        )

    @classmethod
    def merge_conflict(cls, path: str, section: str) -> "CoverageError":
        return cls(
            code=ErrorCode.MERGE_CONFLICT,
            message=(
                f"Coverage samples for {path} disagree on {section}; "
                "the file most likely changed between test runs"
            ),
            details={"path": path, "section": section},
        )

    @classmethod
    def merge_before_reset(cls) -> "CoverageError":
        return cls(
            code=ErrorCode.MERGE_BEFORE_RESET,
            message="Accumulator must be reset before the first merge of a session",
        )


class ReportError(JscovError):
    """Report rendering/writing errors. Always fatal to the reporting step."""

    @classmethod
    def unknown_kind(cls, kind: str, valid: list[str]) -> "ReportError":
        return cls(
            code=ErrorCode.REPORT_UNKNOWN_KIND,
            message=f"Unknown report kind: {kind!r}. Valid kinds: {', '.join(valid)}",
            details={"kind": kind},
        )

    @classmethod
    def write_failed(cls, path: str, reason: str) -> "ReportError":
        return cls(
            code=ErrorCode.REPORT_WRITE_FAILED,
            message=f"Failed to write report {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class InternalError(JscovError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
