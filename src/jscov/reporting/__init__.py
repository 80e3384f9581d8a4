"""Rendering of final coverage maps (json, json-summary, lcov, text, text-summary)."""

from jscov.reporting.summary import build_summary, build_text_summary, classify, percent
from jscov.reporting.writers import WRITERS, lcov_record, write_reports

__all__ = [
    "WRITERS",
    "build_summary",
    "build_text_summary",
    "classify",
    "lcov_record",
    "percent",
    "write_reports",
]
