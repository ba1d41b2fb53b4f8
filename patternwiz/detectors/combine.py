"""Confidence combination rules shared by the technology and pattern detectors."""

from __future__ import annotations

from typing import Callable, Dict, Sequence

_PRECISION = 4


def _max(values: Sequence[float]) -> float:
    return max(values)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def _noisy_or(values: Sequence[float]) -> float:
    # probability that at least one piece of evidence is right
    remaining = 1.0
    for value in values:
        remaining *= 1.0 - value
    return 1.0 - remaining


COMBINERS: Dict[str, Callable[[Sequence[float]], float]] = {
    "max": _max,
    "mean": _mean,
    "noisy_or": _noisy_or,
}


def combine(rule: str, values: Sequence[float]) -> float:
    """Combine confidences with ``rule``; empty input yields 0.0."""
    if not values:
        return 0.0
    try:
        combiner = COMBINERS[rule]
    except KeyError as exc:
        raise ValueError(f"Unknown combine rule: {rule!r}") from exc
    return clip(combiner(values))


def clip(value: float) -> float:
    return round(min(max(value, 0.0), 1.0), _PRECISION)


__all__ = ["COMBINERS", "clip", "combine"]
