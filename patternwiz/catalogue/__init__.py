"""Declarative catalogues of signals, technologies, patterns, and recommendations."""

from .loader import (
    Catalogue,
    Indicator,
    PatternDefinition,
    QualityMetricDefinition,
    RecommendationDefinition,
    SignalDefinition,
    TECH_PREFIX,
    TechnologyDefinition,
    WeightedSignal,
    load_catalogue,
)

__all__ = [
    "Catalogue",
    "Indicator",
    "PatternDefinition",
    "QualityMetricDefinition",
    "RecommendationDefinition",
    "SignalDefinition",
    "TECH_PREFIX",
    "TechnologyDefinition",
    "WeightedSignal",
    "load_catalogue",
]
