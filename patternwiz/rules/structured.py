"""Rules that look inside dependency manifests and structured config files."""

from __future__ import annotations

from fnmatch import fnmatchcase
from pathlib import PurePosixPath
from typing import Any, Iterable, List, Mapping, Sequence

from ..errors import CatalogueError
from ..models import InventoryEntry, Signal
from .base import FileSource, Rule, path_matches
from .manifests import ECOSYSTEMS, manifest_ecosystem, normalise_package


class DependencyRule(Rule):
    """Matches declared packages in the manifests of one ecosystem (or any)."""

    def __init__(
        self,
        signal_id: str,
        confidence: float,
        packages: Sequence[str],
        ecosystem: str = "any",
    ) -> None:
        super().__init__(signal_id, confidence)
        self.packages = tuple(normalise_package(item) for item in packages)
        self.ecosystem = ecosystem

    @classmethod
    def from_options(cls, signal_id: str, confidence: float, options: Mapping[str, Any]) -> "DependencyRule":
        packages = options.get("packages")
        if not isinstance(packages, list) or not packages:
            raise CatalogueError(f"Dependency rule '{signal_id}' needs a non-empty 'packages' list")
        ecosystem = str(options.get("ecosystem") or "any")
        if ecosystem != "any" and ecosystem not in ECOSYSTEMS:
            raise CatalogueError(f"Dependency rule '{signal_id}' uses unknown ecosystem '{ecosystem}'")
        return cls(signal_id, confidence, [str(item) for item in packages], ecosystem)

    def applies_to(self, entry: InventoryEntry) -> bool:
        ecosystem = manifest_ecosystem(PurePosixPath(entry.path).name)
        if ecosystem is None:
            return False
        return self.ecosystem in ("any", ecosystem)

    def evaluate(self, entry: InventoryEntry, source: FileSource) -> Iterable[Signal]:
        matched: List[str] = []
        for names in source.dependencies.values():
            for name in names:
                if any(fnmatchcase(name, pattern) for pattern in self.packages):
                    matched.append(name)
        if not matched:
            return []
        return [self._signal(entry, ", ".join(sorted(set(matched))))]


_MISSING = object()


class KeyRule(Rule):
    """Matches a dotted key path in a JSON, YAML, or TOML document."""

    def __init__(
        self,
        signal_id: str,
        confidence: float,
        files: Sequence[str],
        key: str,
        equals: Any = _MISSING,
    ) -> None:
        super().__init__(signal_id, confidence)
        self.files = tuple(files)
        self.key = key
        self.equals = equals

    @classmethod
    def from_options(cls, signal_id: str, confidence: float, options: Mapping[str, Any]) -> "KeyRule":
        files = options.get("files")
        key = options.get("key")
        if not isinstance(files, list) or not files:
            raise CatalogueError(f"Key rule '{signal_id}' needs a non-empty 'files' list")
        if not isinstance(key, str) or not key:
            raise CatalogueError(f"Key rule '{signal_id}' needs a 'key'")
        equals = options["equals"] if "equals" in options else _MISSING
        return cls(signal_id, confidence, [str(item) for item in files], key, equals)

    def applies_to(self, entry: InventoryEntry) -> bool:
        return path_matches(entry.path, self.files)

    def evaluate(self, entry: InventoryEntry, source: FileSource) -> Iterable[Signal]:
        value = lookup(source.structured, self.key)
        if value is _MISSING:
            return []
        if self.equals is not _MISSING and value != self.equals:
            return []
        return [self._signal(entry, self.key)]


def lookup(document: Any, dotted_key: str) -> Any:
    """Return the value at ``dotted_key``, or the module sentinel when absent."""
    current = document
    for part in dotted_key.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current
