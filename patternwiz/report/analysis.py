"""Structured (JSON) renderings of an analysis report, one document per stage."""

from __future__ import annotations

import json
from collections import Counter
from typing import Any, Dict

from .. import __version__
from ..models import GAP_KINDS, AnalysisReport, to_plain


def render_json(payload: Any) -> str:
    """Serialise ``payload`` deterministically."""
    return json.dumps(to_plain(payload), indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def build_analysis_payloads(report: AnalysisReport) -> Dict[str, Dict[str, Any]]:
    """Return ``{filename: payload}`` for every stage the report covers."""
    stamp = report.generated_at
    payloads: Dict[str, Dict[str, Any]] = {
        "inventory.json": {
            "scan_timestamp": stamp,
            "root": report.root,
            "counts": report.inventory.count_by_role(),
            "files": to_plain(report.inventory.entries),
        },
        "context.json": {
            "analysis_timestamp": stamp,
            "context": to_plain(report.context),
        },
    }
    if report.includes("tech"):
        payloads["technologies.json"] = {
            "analysis_timestamp": stamp,
            "threshold": report.settings.get("threshold"),
            "technologies": to_plain(report.technologies),
            "signals": to_plain(report.signals),
        }
    if report.includes("patterns"):
        payloads["patterns.json"] = {
            "analysis_timestamp": stamp,
            "threshold": report.settings.get("threshold"),
            "patterns": to_plain(report.patterns),
        }
    if report.includes("gaps"):
        kinds = Counter(gap.kind for gap in report.gaps)
        payloads["gaps.json"] = {
            "analysis_timestamp": stamp,
            "completeness_threshold": report.settings.get("completeness_threshold"),
            "summary": {kind: kinds.get(kind, 0) for kind in GAP_KINDS},
            "recommendations": to_plain(report.gaps),
        }
    if report.quality is not None:
        payloads["quality.json"] = {
            "analysis_timestamp": stamp,
            **to_plain(report.quality),
        }
    payloads["metadata.json"] = {
        "analysis_timestamp": stamp,
        "tool": "patternwiz",
        "version": __version__,
        "root": report.root,
        "categories": list(report.categories),
        "settings": to_plain(report.settings),
        "warnings": to_plain(report.warnings),
    }
    return payloads


def report_payload(report: AnalysisReport) -> Dict[str, Any]:
    """Combine all stage payloads into a single document keyed by stage name."""
    return {
        filename.rsplit(".", 1)[0]: payload
        for filename, payload in build_analysis_payloads(report).items()
    }


__all__ = ["build_analysis_payloads", "render_json", "report_payload"]
