"""Rendering of analysis reports into JSON records and markdown documents."""

from .analysis import build_analysis_payloads, render_json, report_payload
from .generator import EXECUTIVE_SUMMARY, RECOMMENDATIONS, ReportGenerator
from .lint import MarkdownLinter

__all__ = [
    "EXECUTIVE_SUMMARY",
    "MarkdownLinter",
    "RECOMMENDATIONS",
    "ReportGenerator",
    "build_analysis_payloads",
    "render_json",
    "report_payload",
]
