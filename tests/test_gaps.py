"""Tests for patternwiz.gaps."""

from __future__ import annotations

import pytest

from patternwiz.catalogue import Catalogue, Indicator, PatternDefinition, RecommendationDefinition
from patternwiz.gaps import GapAnalyzer
from patternwiz.models import EffortEstimate, PatternMatch, Signal, TechnologyMatch


def _pattern(pattern_id: str) -> PatternDefinition:
    return PatternDefinition(
        id=pattern_id,
        name=pattern_id.title(),
        category="x",
        indicators=(Indicator("only", (f"signal.{pattern_id}",)),),
    )


def _recommend(pattern_id: str, priority: float, *, when: tuple[str, ...] = (), hours: float = 8) -> RecommendationDefinition:
    return RecommendationDefinition(
        pattern=pattern_id,
        title=f"Adopt {pattern_id}",
        category="x",
        priority=priority,
        effort=EffortEstimate(tier="medium", hours=hours),
        rationale=f"Because {pattern_id}.",
        when=when,
    )


def _catalogue(**extra: object) -> Catalogue:
    ids = ("auth", "https", "tests", "docs")
    return Catalogue(
        signals=(),
        technologies=(),
        patterns=tuple(_pattern(pattern_id) for pattern_id in ids),
        recommended=(
            _recommend("auth", 0.9),
            _recommend("https", 0.8),
            _recommend("tests", 0.8),
            _recommend("docs", 0.4),
        ),
        **extra,  # type: ignore[arg-type]
    )


def _match(pattern_id: str, completeness: float = 1.0, missing: tuple[str, ...] = ()) -> PatternMatch:
    return PatternMatch(
        id=pattern_id,
        name=pattern_id,
        category="x",
        confidence=0.9,
        completeness=completeness,
        missing=missing,
    )


def test_nothing_detected_means_everything_missing_in_priority_order() -> None:
    gaps = GapAnalyzer(_catalogue()).analyze([])

    assert [(gap.kind, gap.pattern_id) for gap in gaps] == [
        ("missing", "auth"),
        ("missing", "https"),
        ("missing", "tests"),
        ("missing", "docs"),
    ]
    assert gaps[0].effort == EffortEstimate(tier="medium", hours=8)
    assert gaps[0].rationale == "Because auth."


def test_complete_detection_produces_no_gap() -> None:
    gaps = GapAnalyzer(_catalogue()).analyze([_match(pattern_id) for pattern_id in ("auth", "https", "tests", "docs")])

    assert gaps == ()


def test_incomplete_pattern_is_flagged_with_scaled_priority_and_effort() -> None:
    analyzer = GapAnalyzer(_catalogue(), completeness_threshold=0.8)

    gaps = analyzer.analyze(
        [_match("auth", 0.5, ("password-hashing", "route-protection")), _match("https"), _match("tests"), _match("docs")]
    )

    assert len(gaps) == 1
    gap = gaps[0]
    assert gap.kind == "incomplete"
    assert gap.priority == pytest.approx(0.9 * 0.75)
    assert gap.effort.hours == pytest.approx(4.0)
    assert gap.evidence == ("missing indicator: password-hashing", "missing indicator: route-protection")


def test_completeness_at_threshold_is_not_a_gap() -> None:
    gaps = GapAnalyzer(_catalogue(), completeness_threshold=0.8).analyze(
        [_match("auth", 0.8), _match("https"), _match("tests"), _match("docs")]
    )

    assert gaps == ()


def test_detected_and_missing_are_complementary() -> None:
    detected = [_match("auth", 0.25), _match("docs")]
    gaps = GapAnalyzer(_catalogue()).analyze(detected)

    missing = {gap.pattern_id for gap in gaps if gap.kind == "missing"}
    detected_ids = {match.id for match in detected}
    assert missing == {"https", "tests"}
    assert not missing & detected_ids
    assert {gap.pattern_id for gap in gaps if gap.kind == "incomplete"} == {"auth"}


def test_priority_overrides_reorder_recommendations() -> None:
    analyzer = GapAnalyzer(_catalogue(), priorities={"docs": 1.0, "unknown": 0.1})

    gaps = analyzer.analyze([])

    assert [gap.pattern_id for gap in gaps] == ["docs", "auth", "https", "tests"]
    assert gaps[0].priority == pytest.approx(1.0)


def test_equal_priorities_keep_catalogue_order() -> None:
    gaps = GapAnalyzer(_catalogue()).analyze([_match("auth"), _match("docs")])

    assert [gap.pattern_id for gap in gaps] == ["https", "tests"]


def test_upgrade_fires_on_any_trigger_and_conflict_needs_all() -> None:
    catalogue = _catalogue(
        upgrades=(_recommend("auth", 0.85, when=("content.md5-password", "content.sha1-password")),),
        conflicts=(_recommend("docs", 0.5, when=("tech.react", "tech.vue")),),
    )
    detected = [_match(pattern_id) for pattern_id in ("auth", "https", "tests", "docs")]
    signals = [Signal(id="content.md5-password", confidence=0.8, path="auth.js", evidence="md5")]
    react = TechnologyMatch(id="react", name="React", confidence=0.9, category="frontend")
    vue = TechnologyMatch(id="vue", name="Vue", confidence=0.9, category="frontend")

    only_react = GapAnalyzer(catalogue).analyze(detected, signals, [react])
    both = GapAnalyzer(catalogue).analyze(detected, signals, [react, vue])

    assert [(gap.kind, gap.evidence) for gap in only_react] == [("upgrade", ("content.md5-password",))]
    assert [gap.kind for gap in both] == ["upgrade", "conflict"]
    assert both[1].evidence == ("tech.react", "tech.vue")


def test_bundled_catalogue_empty_project_lists_every_recommendation(catalogue: Catalogue) -> None:
    gaps = GapAnalyzer(catalogue).analyze([])

    assert [gap.pattern_id for gap in gaps if gap.kind == "missing"] != []
    assert {gap.pattern_id for gap in gaps} == set(catalogue.recommended_ids())
    priorities = [gap.priority for gap in gaps]
    assert priorities == sorted(priorities, reverse=True)
