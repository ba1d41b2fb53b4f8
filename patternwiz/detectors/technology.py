"""Aggregate signals into technology identifications."""

from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

from ..catalogue import Catalogue
from ..logging import get_logger
from ..models import Signal, TechnologyMatch
from .combine import combine


def strongest_by_id(signals: Iterable[Signal]) -> Dict[str, float]:
    """Collapse duplicate signals so each id counts once at its highest confidence."""
    strongest: Dict[str, float] = {}
    for signal in signals:
        if signal.confidence > strongest.get(signal.id, -1.0):
            strongest[signal.id] = signal.confidence
    return strongest


class TechnologyDetector:
    """Maps signals to catalogue technologies.

    A technology is a candidate when at least one of its signals is present.
    Its confidence is the catalogue combine rule applied to the weighted
    confidences of the signals that were found; candidates below ``threshold``
    are dropped.
    """

    def __init__(self, catalogue: Catalogue, *, threshold: float = 0.5) -> None:
        self.catalogue = catalogue
        self.threshold = threshold
        self.logger = get_logger("detectors.technology")

    def detect(self, signals: Iterable[Signal]) -> Tuple[TechnologyMatch, ...]:
        strongest = strongest_by_id(signals)
        ranked: List[Tuple[int, TechnologyMatch]] = []
        for position, definition in enumerate(self.catalogue.technologies):
            present = [item for item in definition.signals if item.id in strongest]
            if not present:
                continue
            confidence = combine(
                definition.combine,
                [strongest[item.id] * item.weight for item in present],
            )
            if confidence < self.threshold:
                self.logger.debug(
                    "Discarding %s: confidence %.2f below threshold %.2f",
                    definition.id,
                    confidence,
                    self.threshold,
                )
                continue
            match = TechnologyMatch(
                id=definition.id,
                name=definition.name,
                confidence=confidence,
                category=definition.category,
                signals=tuple(sorted(item.id for item in present)),
            )
            ranked.append((position, match))

        ranked.sort(key=lambda pair: (-pair[1].confidence, pair[0]))
        return tuple(match for _, match in ranked)


__all__ = ["TechnologyDetector", "strongest_by_id"]
