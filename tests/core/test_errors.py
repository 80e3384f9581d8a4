"""Tests for error types and codes."""

import pytest

from jscov.core.errors import (
    ConfigError,
    CoverageError,
    ErrorCode,
    InternalError,
    JscovError,
    ReportError,
)


class TestErrorCode:
    """Error code value tests."""

    @pytest.mark.parametrize(
        ("code", "expected_range"),
        [
            (ErrorCode.CONFIG_PARSE_ERROR, 2000),
            (ErrorCode.CONFIG_INVALID_VALUE, 2000),
            (ErrorCode.ARTIFACT_MALFORMED, 3000),
            (ErrorCode.ARTIFACT_UNREADABLE, 3000),
            (ErrorCode.SOURCE_MAP_INVALID, 4000),
            (ErrorCode.TRANSLATION_FAILED, 5000),
            (ErrorCode.MERGE_CONFLICT, 6000),
            (ErrorCode.MERGE_BEFORE_RESET, 6000),
            (ErrorCode.REPORT_UNKNOWN_KIND, 7000),
            (ErrorCode.REPORT_WRITE_FAILED, 7000),
            (ErrorCode.INTERNAL_ERROR, 9000),
        ],
    )
    def test_given_error_code_when_checked_then_in_correct_range(
        self, code: ErrorCode, expected_range: int
    ) -> None:
        """Error codes fall within their designated numeric range."""
        assert expected_range <= code.value < expected_range + 1000


class TestJscovError:
    """Base error behavior tests."""

    def test_given_error_when_to_dict_then_serializes_all_fields(self) -> None:
        # Given
        error = JscovError(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message="Test message",
            retryable=True,
            details={"key": "value"},
        )

        # When
        result = error.to_dict()

        # Then
        assert result == {
            "code": 2001,
            "error": "CONFIG_PARSE_ERROR",
            "message": "Test message",
            "retryable": True,
            "details": {"key": "value"},
        }

    def test_given_error_when_str_then_includes_code_and_name(self) -> None:
        error = JscovError(code=ErrorCode.INTERNAL_ERROR, message="boom")
        assert str(error) == "[9001] INTERNAL_ERROR: boom"

    def test_given_error_when_raised_then_catchable_as_exception(self) -> None:
        with pytest.raises(JscovError) as exc_info:
            raise CoverageError.merge_before_reset()
        assert exc_info.value.code == ErrorCode.MERGE_BEFORE_RESET


class TestFactories:
    """Factory classmethods build the right code and details."""

    def test_config_parse_error(self) -> None:
        error = ConfigError.parse_error("/x/.jscov.yaml", "bad indent")
        assert error.code == ErrorCode.CONFIG_PARSE_ERROR
        assert error.details == {"path": "/x/.jscov.yaml", "reason": "bad indent"}

    def test_config_invalid_value_stringifies_value(self) -> None:
        error = ConfigError.invalid_value("coverage.max_workers", 0, "must be >= 1")
        assert error.details["value"] == "0"
        assert "coverage.max_workers" in error.message

    def test_malformed_artifact_records_source(self) -> None:
        error = CoverageError.malformed_artifact("no result", source="a.json")
        assert error.code == ErrorCode.ARTIFACT_MALFORMED
        assert error.details == {"source": "a.json", "reason": "no result"}

    def test_merge_conflict_names_path_and_section(self) -> None:
        error = CoverageError.merge_conflict("src/a.js", "statementMap")
        assert error.code == ErrorCode.MERGE_CONFLICT
        assert error.details == {"path": "src/a.js", "section": "statementMap"}
        assert "src/a.js" in error.message

    def test_translation_failed(self) -> None:
        error = CoverageError.translation_failed("http://x/a.js", "missing original")
        assert error.code == ErrorCode.TRANSLATION_FAILED
        assert error.details["url"] == "http://x/a.js"

    def test_report_unknown_kind_lists_valid_kinds(self) -> None:
        error = ReportError.unknown_kind("html", ["json", "lcov"])
        assert error.code == ErrorCode.REPORT_UNKNOWN_KIND
        assert "json, lcov" in error.message

    def test_report_write_failed(self) -> None:
        error = ReportError.write_failed("/ro/lcov.info", "read-only file system")
        assert error.code == ErrorCode.REPORT_WRITE_FAILED
        assert error.details["path"] == "/ro/lcov.info"

    def test_internal_unexpected_keeps_details(self) -> None:
        error = InternalError.unexpected("worker died", worker=3)
        assert error.code == ErrorCode.INTERNAL_ERROR
        assert error.details == {"worker": 3}
