"""Loading and validation of the declarative detection catalogues."""

from __future__ import annotations

from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Tuple

import yaml

from ..errors import CatalogueError
from ..logging import get_logger
from ..models import EffortEstimate

TECH_PREFIX = "tech."

COMBINE_RULES = ("max", "mean", "noisy_or")
QUALITY_KINDS = ("test_ratio", "presence")
EFFORT_TIERS = ("low", "medium", "high")

_FILES = {
    "signals": "signals.yaml",
    "technologies": "technologies.yaml",
    "patterns": "patterns.yaml",
    "recommendations": "recommendations.yaml",
    "quality": "quality.yaml",
}

logger = get_logger("catalogue")


@dataclass(frozen=True)
class SignalDefinition:
    """A rule definition; ``options`` holds the type-specific settings."""

    id: str
    type: str
    confidence: float
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WeightedSignal:
    id: str
    weight: float = 1.0


@dataclass(frozen=True)
class TechnologyDefinition:
    id: str
    name: str
    category: str
    signals: Tuple[WeightedSignal, ...]
    combine: str = "max"

    @property
    def reference(self) -> str:
        return f"{TECH_PREFIX}{self.id}"


@dataclass(frozen=True)
class Indicator:
    id: str
    any_of: Tuple[str, ...]


@dataclass(frozen=True)
class PatternDefinition:
    id: str
    name: str
    category: str
    indicators: Tuple[Indicator, ...]
    combine: str = "max"


@dataclass(frozen=True)
class RecommendationDefinition:
    """A recommended pattern, or an upgrade / conflict rule when ``when`` is set."""

    pattern: str
    title: str
    category: str
    priority: float
    effort: EffortEstimate
    rationale: str = ""
    when: Tuple[str, ...] = ()


@dataclass(frozen=True)
class QualityMetricDefinition:
    id: str
    label: str
    kind: str
    weight: float
    signals: Tuple[str, ...] = ()
    target: float = 1.0


@dataclass(frozen=True)
class Catalogue:
    """All static reference data the pipeline reasons with."""

    signals: Tuple[SignalDefinition, ...]
    technologies: Tuple[TechnologyDefinition, ...]
    patterns: Tuple[PatternDefinition, ...]
    recommended: Tuple[RecommendationDefinition, ...]
    upgrades: Tuple[RecommendationDefinition, ...] = ()
    conflicts: Tuple[RecommendationDefinition, ...] = ()
    quality_metrics: Tuple[QualityMetricDefinition, ...] = ()
    max_score: float = 100.0

    def technology(self, technology_id: str) -> TechnologyDefinition:
        for definition in self.technologies:
            if definition.id == technology_id:
                return definition
        raise KeyError(technology_id)

    def pattern(self, pattern_id: str) -> PatternDefinition:
        for definition in self.patterns:
            if definition.id == pattern_id:
                return definition
        raise KeyError(pattern_id)

    def recommended_ids(self) -> List[str]:
        return [definition.pattern for definition in self.recommended]


def load_catalogue(
    directory: Path | None = None,
    *,
    extra_signal_ids: Iterable[str] = (),
) -> Catalogue:
    """Load the catalogue, preferring files from ``directory`` over the bundled data.

    ``extra_signal_ids`` lists ids produced by plugin rules so catalogue entries
    may reference them.
    """
    if directory is not None and not directory.is_dir():
        raise CatalogueError(f"Catalogue directory not found: {directory}")
    documents = {key: _load_document(directory, filename) for key, filename in _FILES.items()}

    signals = _parse_signals(documents["signals"])
    known_signals = {definition.id for definition in signals}
    known_signals.update(extra_signal_ids)

    technologies = _parse_technologies(documents["technologies"], known_signals)
    known_refs = set(known_signals)
    known_refs.update(definition.reference for definition in technologies)

    patterns = _parse_patterns(documents["patterns"], known_refs)
    pattern_ids = {definition.id for definition in patterns}

    recommendation_doc = documents["recommendations"]
    recommended = _parse_recommendations(
        recommendation_doc, "recommended", pattern_ids, known_refs, with_triggers=False
    )
    seen: set[str] = set()
    for definition in recommended:
        if definition.pattern in seen:
            raise CatalogueError(f"Pattern '{definition.pattern}' is recommended more than once")
        seen.add(definition.pattern)
    upgrades = _parse_recommendations(
        recommendation_doc, "upgrades", pattern_ids, known_refs, with_triggers=True
    )
    conflicts = _parse_recommendations(
        recommendation_doc, "conflicts", pattern_ids, known_refs, with_triggers=True
    )

    max_score, metrics = _parse_quality(documents["quality"], known_signals)

    logger.debug(
        "Loaded catalogue: %d signals, %d technologies, %d patterns, %d recommendations",
        len(signals),
        len(technologies),
        len(patterns),
        len(recommended),
    )
    return Catalogue(
        signals=signals,
        technologies=technologies,
        patterns=patterns,
        recommended=recommended,
        upgrades=upgrades,
        conflicts=conflicts,
        quality_metrics=metrics,
        max_score=max_score,
    )


def _load_document(directory: Path | None, filename: str) -> Dict[str, Any]:
    if directory is not None and (directory / filename).is_file():
        source = directory / filename
        try:
            text = source.read_text(encoding="utf-8")
        except OSError as exc:
            raise CatalogueError(f"Cannot read catalogue file {source}: {exc}") from exc
        label = str(source)
    else:
        resource = resources.files("patternwiz.catalogue").joinpath("data").joinpath(filename)
        try:
            text = resource.read_text(encoding="utf-8")
        except (FileNotFoundError, OSError) as exc:
            raise CatalogueError(f"Bundled catalogue file {filename} is missing") from exc
        label = filename
        if directory is not None:
            logger.info("Catalogue file %s not found in %s; using bundled data", filename, directory)

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise CatalogueError(f"Failed to parse catalogue file {label}: {exc}") from exc
    if not isinstance(data, dict):
        raise CatalogueError(f"Catalogue file {label} must contain a mapping at the root")
    return data


def _parse_signals(document: Mapping[str, Any]) -> Tuple[SignalDefinition, ...]:
    definitions: List[SignalDefinition] = []
    seen: set[str] = set()
    for raw in _entries(document, "signals"):
        signal_id = _required_str(raw, "id", "signal")
        if signal_id in seen:
            raise CatalogueError(f"Duplicate signal id '{signal_id}'")
        if signal_id.startswith(TECH_PREFIX):
            raise CatalogueError(f"Signal id '{signal_id}' uses the reserved '{TECH_PREFIX}' prefix")
        seen.add(signal_id)
        rule_type = _required_str(raw, "type", f"signal '{signal_id}'")
        confidence = _unit(raw.get("confidence"), f"signal '{signal_id}' confidence")
        options = {key: value for key, value in raw.items() if key not in {"id", "type", "confidence"}}
        definitions.append(
            SignalDefinition(id=signal_id, type=rule_type, confidence=confidence, options=options)
        )
    return tuple(definitions)


def _parse_technologies(
    document: Mapping[str, Any], known_signals: set[str]
) -> Tuple[TechnologyDefinition, ...]:
    definitions: List[TechnologyDefinition] = []
    seen: set[str] = set()
    for raw in _entries(document, "technologies"):
        tech_id = _required_str(raw, "id", "technology")
        if tech_id in seen:
            raise CatalogueError(f"Duplicate technology id '{tech_id}'")
        seen.add(tech_id)
        owner = f"technology '{tech_id}'"
        weighted: List[WeightedSignal] = []
        for item in _list(raw.get("signals"), f"{owner} signals"):
            if isinstance(item, str):
                entry = WeightedSignal(id=item)
            elif isinstance(item, dict):
                entry = WeightedSignal(
                    id=_required_str(item, "id", f"{owner} signal"),
                    weight=_unit(item.get("weight", 1.0), f"{owner} signal weight"),
                )
            else:
                raise CatalogueError(f"{owner} has an invalid signal entry: {item!r}")
            if entry.id not in known_signals:
                raise CatalogueError(f"{owner} references unknown signal '{entry.id}'")
            weighted.append(entry)
        if not weighted:
            raise CatalogueError(f"{owner} must list at least one signal")
        definitions.append(
            TechnologyDefinition(
                id=tech_id,
                name=_required_str(raw, "name", owner),
                category=_required_str(raw, "category", owner),
                signals=tuple(weighted),
                combine=_combine_rule(raw.get("combine"), owner),
            )
        )
    return tuple(definitions)


def _parse_patterns(
    document: Mapping[str, Any], known_refs: set[str]
) -> Tuple[PatternDefinition, ...]:
    definitions: List[PatternDefinition] = []
    seen: set[str] = set()
    for raw in _entries(document, "patterns"):
        pattern_id = _required_str(raw, "id", "pattern")
        if pattern_id in seen:
            raise CatalogueError(f"Duplicate pattern id '{pattern_id}'")
        seen.add(pattern_id)
        owner = f"pattern '{pattern_id}'"
        indicators: List[Indicator] = []
        for item in _list(raw.get("indicators"), f"{owner} indicators"):
            if not isinstance(item, dict):
                raise CatalogueError(f"{owner} has an invalid indicator: {item!r}")
            indicator_id = _required_str(item, "id", f"{owner} indicator")
            refs = tuple(str(ref) for ref in _list(item.get("any"), f"{owner} indicator '{indicator_id}'"))
            if not refs:
                raise CatalogueError(f"{owner} indicator '{indicator_id}' lists no references")
            for ref in refs:
                if ref not in known_refs:
                    raise CatalogueError(f"{owner} references unknown signal or technology '{ref}'")
            indicators.append(Indicator(id=indicator_id, any_of=refs))
        if not indicators:
            raise CatalogueError(f"{owner} must define at least one indicator")
        definitions.append(
            PatternDefinition(
                id=pattern_id,
                name=_required_str(raw, "name", owner),
                category=_required_str(raw, "category", owner),
                indicators=tuple(indicators),
                combine=_combine_rule(raw.get("combine"), owner),
            )
        )
    return tuple(definitions)


def _parse_recommendations(
    document: Mapping[str, Any],
    key: str,
    pattern_ids: set[str],
    known_refs: set[str],
    *,
    with_triggers: bool,
) -> Tuple[RecommendationDefinition, ...]:
    if key not in document and with_triggers:
        return ()
    definitions: List[RecommendationDefinition] = []
    for raw in _entries(document, key):
        pattern_id = _required_str(raw, "pattern", key)
        owner = f"{key} entry for '{pattern_id}'"
        if pattern_id not in pattern_ids:
            raise CatalogueError(f"{owner} references unknown pattern")
        when: Tuple[str, ...] = ()
        if with_triggers:
            when = tuple(str(ref) for ref in _list(raw.get("when"), f"{owner} when"))
            if not when:
                raise CatalogueError(f"{owner} must list at least one trigger in 'when'")
            for ref in when:
                if ref not in known_refs:
                    raise CatalogueError(f"{owner} references unknown signal or technology '{ref}'")
        definitions.append(
            RecommendationDefinition(
                pattern=pattern_id,
                title=_required_str(raw, "title", owner),
                category=_required_str(raw, "category", owner),
                priority=_unit(raw.get("priority"), f"{owner} priority"),
                effort=_effort(raw.get("effort"), owner),
                rationale=str(raw.get("rationale") or ""),
                when=when,
            )
        )
    return tuple(definitions)


def _parse_quality(
    document: Mapping[str, Any], known_signals: set[str]
) -> Tuple[float, Tuple[QualityMetricDefinition, ...]]:
    max_score = _number(document.get("max_score", 100), "quality max_score")
    if max_score <= 0:
        raise CatalogueError("quality max_score must be positive")
    metrics: List[QualityMetricDefinition] = []
    for raw in _entries(document, "metrics"):
        metric_id = _required_str(raw, "id", "quality metric")
        owner = f"quality metric '{metric_id}'"
        kind = _required_str(raw, "kind", owner)
        if kind not in QUALITY_KINDS:
            raise CatalogueError(f"{owner} has unknown kind '{kind}'")
        signals = tuple(str(ref) for ref in _list(raw.get("signals", []), f"{owner} signals"))
        for ref in signals:
            if ref not in known_signals:
                raise CatalogueError(f"{owner} references unknown signal '{ref}'")
        if kind == "presence" and not signals:
            raise CatalogueError(f"{owner} must list signals")
        target = _number(raw.get("target", 1.0), f"{owner} target")
        if target <= 0:
            raise CatalogueError(f"{owner} target must be positive")
        weight = _number(raw.get("weight"), f"{owner} weight")
        if weight < 0:
            raise CatalogueError(f"{owner} weight must not be negative")
        metrics.append(
            QualityMetricDefinition(
                id=metric_id,
                label=str(raw.get("label") or metric_id),
                kind=kind,
                weight=weight,
                signals=signals,
                target=target,
            )
        )
    total = sum(metric.weight for metric in metrics)
    if total > max_score:
        raise CatalogueError(f"quality metric weights ({total}) exceed max_score ({max_score})")
    return max_score, tuple(metrics)


def _entries(document: Mapping[str, Any], key: str) -> List[Dict[str, Any]]:
    items = _list(document.get(key), key)
    for item in items:
        if not isinstance(item, dict):
            raise CatalogueError(f"Entries under '{key}' must be mappings, got {item!r}")
    return items


def _list(value: Any, owner: str) -> List[Any]:
    if value is None:
        raise CatalogueError(f"{owner} is missing")
    if not isinstance(value, list):
        raise CatalogueError(f"{owner} must be a list")
    return value


def _required_str(raw: Mapping[str, Any], key: str, owner: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value.strip():
        raise CatalogueError(f"{owner} is missing '{key}'")
    return value.strip()


def _number(value: Any, owner: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise CatalogueError(f"{owner} must be a number")
    return float(value)


def _unit(value: Any, owner: str) -> float:
    number = _number(value, owner)
    if not 0.0 <= number <= 1.0:
        raise CatalogueError(f"{owner} must be between 0 and 1, got {number}")
    return number


def _combine_rule(value: Any, owner: str) -> str:
    if value is None:
        return "max"
    if value not in COMBINE_RULES:
        raise CatalogueError(f"{owner} uses unknown combine rule '{value}'")
    return str(value)


def _effort(value: Any, owner: str) -> EffortEstimate:
    if not isinstance(value, dict):
        raise CatalogueError(f"{owner} is missing 'effort'")
    tier = value.get("tier")
    if tier not in EFFORT_TIERS:
        raise CatalogueError(f"{owner} effort tier must be one of {', '.join(EFFORT_TIERS)}")
    hours = _number(value.get("hours"), f"{owner} effort hours")
    if hours < 0:
        raise CatalogueError(f"{owner} effort hours must not be negative")
    return EffortEstimate(tier=str(tier), hours=hours)

