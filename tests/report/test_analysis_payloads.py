"""Tests for the structured analysis records."""

from __future__ import annotations

import json

from patternwiz.models import AnalysisReport, Inventory, InventoryEntry, ProjectContext
from patternwiz.report import build_analysis_payloads, render_json, report_payload


def _report(categories: tuple[str, ...]) -> AnalysisReport:
    return AnalysisReport(
        root="/work/shop",
        generated_at="2024-05-01T12:00:00+00:00",
        context=ProjectContext(project_name="shop"),
        inventory=Inventory(root="/work/shop", entries=(InventoryEntry(path="a.py", role="source", size=3, language="Python"),)),
        categories=categories,
        settings={"threshold": 0.5, "completeness_threshold": 0.8},
    )


def test_payloads_follow_categories() -> None:
    assert sorted(build_analysis_payloads(_report(("tech",)))) == [
        "context.json",
        "inventory.json",
        "metadata.json",
        "technologies.json",
    ]
    assert sorted(build_analysis_payloads(_report(("tech", "patterns", "gaps")))) == [
        "context.json",
        "gaps.json",
        "inventory.json",
        "metadata.json",
        "patterns.json",
        "technologies.json",
    ]


def test_payloads_carry_timestamps() -> None:
    payloads = build_analysis_payloads(_report(("tech", "patterns", "gaps")))

    assert payloads["inventory.json"]["scan_timestamp"] == "2024-05-01T12:00:00+00:00"
    for name in ("technologies.json", "patterns.json", "gaps.json", "metadata.json", "context.json"):
        assert payloads[name]["analysis_timestamp"] == "2024-05-01T12:00:00+00:00"
    assert payloads["inventory.json"]["counts"]["source"] == 1
    assert payloads["gaps.json"]["summary"] == {"missing": 0, "incomplete": 0, "upgrade": 0, "conflict": 0}


def test_render_json_is_sorted_and_stable() -> None:
    text = render_json({"b": (1, 2), "a": ProjectContext(project_name="x")})

    assert text == render_json({"a": ProjectContext(project_name="x"), "b": [1, 2]})
    assert text.index('"a"') < text.index('"b"')
    assert json.loads(text)["a"]["goals"] == []


def test_report_payload_is_keyed_by_stage() -> None:
    payload = report_payload(_report(("tech",)))

    assert set(payload) == {"context", "inventory", "metadata", "technologies"}
    assert payload["metadata"]["categories"] == ["tech"]
