"""Detectors that turn raw signals into named entities."""

from .combine import COMBINERS, clip, combine
from .patterns import PatternDetector, build_evidence
from .technology import TechnologyDetector, strongest_by_id

__all__ = [
    "COMBINERS",
    "PatternDetector",
    "TechnologyDetector",
    "build_evidence",
    "clip",
    "combine",
    "strongest_by_id",
]
