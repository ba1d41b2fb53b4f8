"""Aggregate technologies and structural signals into pattern identifications."""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Tuple

from ..catalogue import TECH_PREFIX, Catalogue
from ..logging import get_logger
from ..models import PatternMatch, Signal, TechnologyMatch
from .combine import combine
from .technology import strongest_by_id


def build_evidence(
    signals: Iterable[Signal], technologies: Sequence[TechnologyMatch]
) -> Dict[str, float]:
    """Return a reference -> confidence map usable by pattern indicators and triggers."""
    evidence = strongest_by_id(signals)
    for match in technologies:
        evidence[f"{TECH_PREFIX}{match.id}"] = match.confidence
    return evidence


class PatternDetector:
    """Scores catalogue patterns from indicator evidence.

    Each indicator is satisfied by the strongest of its alternative references.
    Confidence combines the satisfied indicators; completeness is the share of
    indicators that were satisfied.
    """

    def __init__(self, catalogue: Catalogue, *, threshold: float = 0.5) -> None:
        self.catalogue = catalogue
        self.threshold = threshold
        self.logger = get_logger("detectors.patterns")

    def detect(
        self,
        signals: Iterable[Signal],
        technologies: Sequence[TechnologyMatch],
    ) -> Tuple[PatternMatch, ...]:
        evidence = build_evidence(signals, technologies)
        ranked: List[Tuple[int, PatternMatch]] = []
        for position, definition in enumerate(self.catalogue.patterns):
            observed: List[str] = []
            missing: List[str] = []
            scores: List[float] = []
            for indicator in definition.indicators:
                hits = [evidence[ref] for ref in indicator.any_of if ref in evidence]
                if hits:
                    observed.append(indicator.id)
                    scores.append(max(hits))
                else:
                    missing.append(indicator.id)
            if not observed:
                continue

            confidence = combine(definition.combine, scores)
            if confidence < self.threshold:
                self.logger.debug(
                    "Discarding pattern %s: confidence %.2f below threshold %.2f",
                    definition.id,
                    confidence,
                    self.threshold,
                )
                continue
            completeness = round(len(observed) / len(definition.indicators), 4)
            ranked.append(
                (
                    position,
                    PatternMatch(
                        id=definition.id,
                        name=definition.name,
                        category=definition.category,
                        confidence=confidence,
                        completeness=completeness,
                        observed=tuple(observed),
                        missing=tuple(missing),
                    ),
                )
            )

        ranked.sort(key=lambda pair: (-pair[1].confidence, pair[0]))
        return tuple(match for _, match in ranked)


__all__ = ["PatternDetector", "build_evidence"]
