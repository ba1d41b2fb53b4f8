"""Compare detected patterns against the recommended-pattern catalogue."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .catalogue import Catalogue, RecommendationDefinition
from .detectors import build_evidence
from .logging import get_logger
from .models import EffortEstimate, GapRecommendation, PatternMatch, Signal, TechnologyMatch


class GapAnalyzer:
    """Turns the detected pattern set into prioritised recommendations.

    * ``missing``: a recommended pattern that was not detected.
    * ``incomplete``: a recommended pattern detected with completeness below
      ``completeness_threshold``.
    * ``upgrade``: any trigger of an upgrade rule is present.
    * ``conflict``: every trigger of a conflict rule is present.

    ``priorities`` overrides the catalogue priority of recommended patterns by
    pattern id. The result is ordered by descending priority; equal priorities
    keep catalogue order.
    """

    def __init__(
        self,
        catalogue: Catalogue,
        *,
        completeness_threshold: float = 0.8,
        priorities: Optional[Mapping[str, float]] = None,
    ) -> None:
        self.catalogue = catalogue
        self.completeness_threshold = completeness_threshold
        self.priorities = dict(priorities or {})
        self.logger = get_logger("gaps")
        unknown = sorted(set(self.priorities) - set(catalogue.recommended_ids()))
        if unknown:
            self.logger.warning(
                "Ignoring priority overrides for patterns that are not recommended: %s",
                ", ".join(unknown),
            )

    def analyze(
        self,
        patterns: Sequence[PatternMatch],
        signals: Iterable[Signal] = (),
        technologies: Sequence[TechnologyMatch] = (),
    ) -> Tuple[GapRecommendation, ...]:
        detected: Dict[str, PatternMatch] = {match.id: match for match in patterns}
        evidence = build_evidence(signals, technologies)

        gaps: List[GapRecommendation] = []
        for definition in self.catalogue.recommended:
            weight = self.priorities.get(definition.pattern, definition.priority)
            match = detected.get(definition.pattern)
            if match is None:
                gaps.append(_recommend("missing", definition, weight, definition.effort))
            elif match.completeness < self.completeness_threshold:
                gaps.append(self._incomplete(definition, weight, match))

        for definition in self.catalogue.upgrades:
            triggered = [ref for ref in definition.when if ref in evidence]
            if triggered:
                gaps.append(
                    _recommend("upgrade", definition, definition.priority, definition.effort, triggered)
                )

        for definition in self.catalogue.conflicts:
            if all(ref in evidence for ref in definition.when):
                gaps.append(
                    _recommend(
                        "conflict",
                        definition,
                        definition.priority,
                        definition.effort,
                        definition.when,
                    )
                )

        # sorted() is stable, so equal priorities keep the order built above
        ordered = tuple(sorted(gaps, key=lambda gap: -gap.priority))
        self.logger.debug("Produced %d recommendations", len(ordered))
        return ordered

    def _incomplete(
        self,
        definition: RecommendationDefinition,
        weight: float,
        match: PatternMatch,
    ) -> GapRecommendation:
        shortfall = 1.0 - match.completeness
        priority = round(weight * (0.5 + 0.5 * shortfall), 4)
        effort = EffortEstimate(
            tier=definition.effort.tier,
            hours=round(definition.effort.hours * shortfall, 1),
        )
        evidence = [f"missing indicator: {indicator}" for indicator in match.missing]
        return _recommend("incomplete", definition, priority, effort, evidence)


def _recommend(
    kind: str,
    definition: RecommendationDefinition,
    priority: float,
    effort: EffortEstimate,
    evidence: Iterable[str] = (),
) -> GapRecommendation:
    return GapRecommendation(
        kind=kind,
        pattern_id=definition.pattern,
        title=definition.title,
        category=definition.category,
        priority=priority,
        effort=effort,
        rationale=definition.rationale,
        evidence=tuple(evidence),
    )


__all__ = ["GapAnalyzer"]
