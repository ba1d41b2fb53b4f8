"""Core data models shared across patternwiz components."""

from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple

ROLES = ("source", "config", "test", "doc", "other")

GAP_KINDS = ("missing", "incomplete", "upgrade", "conflict")


def _check_unit_interval(owner: str, name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{owner}.{name} must be within [0, 1], got {value!r}")


@dataclass(frozen=True)
class InventoryEntry:
    """A single file discovered during the inventory scan."""

    path: str
    role: str
    size: int
    language: Optional[str] = None


@dataclass(frozen=True)
class Inventory:
    """Path-ordered view of the project tree handed to the signal extractor."""

    root: str
    entries: Tuple[InventoryEntry, ...]
    warnings: Tuple[AnalysisWarning, ...] = ()

    def count_by_role(self) -> Dict[str, int]:
        counts = Counter(entry.role for entry in self.entries)
        return {role: counts.get(role, 0) for role in ROLES}

    def paths(self) -> set[str]:
        return {entry.path for entry in self.entries}


@dataclass(frozen=True)
class Signal:
    """One piece of evidence: a rule that matched a file."""

    id: str
    confidence: float
    path: str
    evidence: str

    def __post_init__(self) -> None:
        _check_unit_interval("Signal", "confidence", self.confidence)


@dataclass(frozen=True)
class TechnologyMatch:
    id: str
    name: str
    confidence: float
    category: str
    signals: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _check_unit_interval("TechnologyMatch", "confidence", self.confidence)


@dataclass(frozen=True)
class PatternMatch:
    """A detected pattern.

    ``confidence`` is how certain the detection is, ``completeness`` is the
    fraction of the pattern's indicators that were observed.
    """

    id: str
    name: str
    category: str
    confidence: float
    completeness: float
    observed: Tuple[str, ...] = ()
    missing: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _check_unit_interval("PatternMatch", "confidence", self.confidence)
        _check_unit_interval("PatternMatch", "completeness", self.completeness)


@dataclass(frozen=True)
class EffortEstimate:
    tier: str
    hours: float


@dataclass(frozen=True)
class GapRecommendation:
    """A recommended change; higher ``priority`` means more urgent."""

    kind: str
    pattern_id: str
    title: str
    category: str
    priority: float
    effort: EffortEstimate
    rationale: str = ""
    evidence: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.kind not in GAP_KINDS:
            raise ValueError(f"Unknown recommendation kind: {self.kind!r}")
        _check_unit_interval("GapRecommendation", "priority", self.priority)


@dataclass(frozen=True)
class QualityMetric:
    id: str
    label: str
    value: float
    points: float
    max_points: float
    detail: str = ""


@dataclass(frozen=True)
class QualityScore:
    value: float
    max_score: float
    metrics: Tuple[QualityMetric, ...] = ()

    def __post_init__(self) -> None:
        if not 0.0 <= self.value <= self.max_score:
            raise ValueError(
                f"QualityScore.value must be within [0, {self.max_score}], got {self.value!r}"
            )


@dataclass(frozen=True)
class AnalysisWarning:
    """A file that was skipped or partially analysed, with the reason."""

    path: str
    reason: str


@dataclass(frozen=True)
class ProjectContext:
    """Answers gathered from the user (or configured defaults) before analysis."""

    project_name: str
    stage: str = "unknown"
    team_size: str = "unknown"
    goals: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AnalysisReport:
    """Immutable snapshot of one analysis run, keyed by ``generated_at``."""

    root: str
    generated_at: str
    context: ProjectContext
    inventory: Inventory
    categories: Tuple[str, ...] = ("tech", "patterns", "gaps")
    signals: Tuple[Signal, ...] = ()
    technologies: Tuple[TechnologyMatch, ...] = ()
    patterns: Tuple[PatternMatch, ...] = ()
    gaps: Tuple[GapRecommendation, ...] = ()
    quality: Optional[QualityScore] = None
    warnings: Tuple[AnalysisWarning, ...] = ()
    settings: Dict[str, Any] = field(default_factory=dict)

    def includes(self, category: str) -> bool:
        return category in self.categories


def to_plain(value: Any) -> Any:
    """Return a JSON-friendly copy of a model instance (tuples become lists)."""
    if hasattr(value, "__dataclass_fields__"):
        return to_plain(asdict(value))
    if isinstance(value, dict):
        return {str(key): to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    return value
