"""Project quality score computed from catalogue metrics."""

from __future__ import annotations

from typing import Iterable, List

from .catalogue import Catalogue, QualityMetricDefinition
from .logging import get_logger
from .models import Inventory, QualityMetric, QualityScore, Signal


class QualityAssessor:
    """Scores a project out of the catalogue ``max_score``.

    ``test_ratio`` metrics award points in proportion to test files per source
    file, capped at the metric target. ``presence`` metrics award their full
    weight when any listed signal was found.
    """

    def __init__(self, catalogue: Catalogue) -> None:
        self.catalogue = catalogue
        self.logger = get_logger("quality")

    def assess(self, inventory: Inventory, signals: Iterable[Signal]) -> QualityScore:
        present = {signal.id for signal in signals}
        counts = inventory.count_by_role()
        metrics: List[QualityMetric] = []
        for definition in self.catalogue.quality_metrics:
            if definition.kind == "test_ratio":
                metrics.append(_test_ratio(definition, counts["test"], counts["source"]))
            else:
                metrics.append(_presence(definition, present))

        total = sum(metric.points for metric in metrics)
        value = round(min(total, self.catalogue.max_score), 2)
        self.logger.debug("Quality score %.2f / %.0f", value, self.catalogue.max_score)
        return QualityScore(value=value, max_score=self.catalogue.max_score, metrics=tuple(metrics))


def _test_ratio(definition: QualityMetricDefinition, tests: int, sources: int) -> QualityMetric:
    ratio = tests / sources if sources else 0.0
    points = definition.weight * min(ratio / definition.target, 1.0)
    return QualityMetric(
        id=definition.id,
        label=definition.label,
        value=round(ratio, 4),
        points=round(points, 2),
        max_points=definition.weight,
        detail=f"{tests} test files for {sources} source files",
    )


def _presence(definition: QualityMetricDefinition, present: set[str]) -> QualityMetric:
    found = [ref for ref in definition.signals if ref in present]
    return QualityMetric(
        id=definition.id,
        label=definition.label,
        value=1.0 if found else 0.0,
        points=definition.weight if found else 0.0,
        max_points=definition.weight,
        detail=", ".join(found) if found else "not found",
    )


__all__ = ["QualityAssessor"]
