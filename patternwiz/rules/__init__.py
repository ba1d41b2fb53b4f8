"""Signal rule implementations and the rule registry."""

from __future__ import annotations

from importlib import metadata
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence

from ..catalogue import Catalogue, SignalDefinition
from ..errors import CatalogueError
from .base import FileSource, FileTooLarge, Rule
from .content import ContentRule
from .filename import FileNameRule
from .structured import DependencyRule, KeyRule

_ENTRY_POINT_GROUP = "patternwiz.rules"

RuleFactory = Callable[[str, float, Mapping[str, Any]], Rule]

RULE_TYPES: Dict[str, RuleFactory] = {
    "file": FileNameRule.from_options,
    "content": ContentRule.from_options,
    "dependency": DependencyRule.from_options,
    "key": KeyRule.from_options,
}


def build_rule(definition: SignalDefinition) -> Rule:
    factory = RULE_TYPES.get(definition.type)
    if factory is None:
        raise CatalogueError(
            f"Signal '{definition.id}' has unknown rule type '{definition.type}'"
        )
    return factory(definition.id, definition.confidence, definition.options)


def build_rules(catalogue: Catalogue, extra: Sequence[Rule] = ()) -> List[Rule]:
    """Instantiate one rule per catalogue signal, followed by any extra rules."""
    rules = [build_rule(definition) for definition in catalogue.signals]
    rules.extend(extra)
    return rules


def discover_plugin_rules() -> List[Rule]:
    """Return rules contributed through the ``patternwiz.rules`` entry-point group.

    An entry point may resolve to a Rule instance, a Rule subclass, or a
    callable returning one rule or an iterable of rules.
    """
    rules: List[Rule] = []
    for entry in _iter_entry_points():
        try:
            loaded = entry.load()
        except Exception as exc:  # pragma: no cover - depends on third-party plugins
            raise CatalogueError(f"Failed to load rule plugin '{entry.name}': {exc}") from exc
        rules.extend(_coerce_rules(entry.name, loaded))
    return rules


def _coerce_rules(name: str, obj: object) -> List[Rule]:
    if isinstance(obj, Rule):
        return [obj]
    produced: object = obj
    if isinstance(obj, type) and issubclass(obj, Rule):
        produced = obj()  # type: ignore[call-arg]
    elif callable(obj):
        produced = obj()
    if isinstance(produced, Rule):
        return [produced]
    if isinstance(produced, Iterable):
        items = list(produced)
        if all(isinstance(item, Rule) for item in items):
            return items
    raise CatalogueError(f"Rule plugin '{name}' must provide Rule instances")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "ContentRule",
    "DependencyRule",
    "FileNameRule",
    "FileSource",
    "FileTooLarge",
    "KeyRule",
    "RULE_TYPES",
    "Rule",
    "build_rule",
    "build_rules",
    "discover_plugin_rules",
]
