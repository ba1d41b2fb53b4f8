"""Human-readable markdown reports rendered from an analysis report."""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Any, Dict

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..models import GAP_KINDS, AnalysisReport
from .lint import MarkdownLinter

EXECUTIVE_SUMMARY = "executive-summary.md"
RECOMMENDATIONS = "recommendations.md"

_TOP_RECOMMENDATIONS = 5


def _percent(value: float) -> str:
    return f"{round(value * 100)}%"


def _hours(value: float) -> str:
    return f"{value:g}"


class ReportGenerator:
    """Renders markdown documents from an :class:`AnalysisReport`.

    Rendering is a pure function of the report: no clock, filesystem state, or
    randomness is consulted, so identical reports produce identical text.
    """

    def __init__(self, templates_dir: Path | None = None, linter: MarkdownLinter | None = None) -> None:
        self.templates_dir = templates_dir or Path(__file__).with_name("templates")
        self.linter = linter or MarkdownLinter()
        self._env = self._create_env(self.templates_dir)

    def render(self, report: AnalysisReport) -> Dict[str, str]:
        """Return ``{filename: markdown}`` for every document the report supports."""
        documents = {EXECUTIVE_SUMMARY: self.render_executive_summary(report)}
        if report.includes("gaps"):
            documents[RECOMMENDATIONS] = self.render_recommendations(report)
        return documents

    def render_executive_summary(self, report: AnalysisReport) -> str:
        return self._render("executive-summary.md.j2", report)

    def render_recommendations(self, report: AnalysisReport) -> str:
        return self._render("recommendations.md.j2", report)

    def _render(self, template_name: str, report: AnalysisReport) -> str:
        template = self._env.get_template(template_name)
        return self.linter.lint(template.render(**self._template_context(report)))

    @staticmethod
    def _template_context(report: AnalysisReport) -> Dict[str, Any]:
        counts = report.inventory.count_by_role()
        kinds = Counter(gap.kind for gap in report.gaps)
        return {
            "report": report,
            "context": report.context,
            "categories": report.categories,
            "counts": counts,
            "total_files": sum(counts.values()),
            "technologies": report.technologies,
            "patterns": report.patterns,
            "gaps": report.gaps,
            "top_gaps": report.gaps[:_TOP_RECOMMENDATIONS],
            "gap_counts": {kind: kinds.get(kind, 0) for kind in GAP_KINDS},
            "total_hours": sum(gap.effort.hours for gap in report.gaps),
            "quality": report.quality,
            "warnings": report.warnings,
            "threshold": report.settings.get("threshold", 0.5),
            "completeness_threshold": report.settings.get("completeness_threshold", 0.8),
        }

    @staticmethod
    def _create_env(templates_dir: Path) -> Environment:
        directories = [str(templates_dir)]
        default_dir = str(Path(__file__).with_name("templates"))
        if default_dir not in directories:
            directories.append(default_dir)
        env = Environment(
            loader=FileSystemLoader(directories),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        env.filters["percent"] = _percent
        env.filters["hours"] = _hours
        return env


__all__ = ["EXECUTIVE_SUMMARY", "RECOMMENDATIONS", "ReportGenerator"]
