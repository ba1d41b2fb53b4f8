"""Rules that match on file paths only."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

from ..errors import CatalogueError
from ..models import InventoryEntry, Signal
from .base import FileSource, Rule, path_matches


class FileNameRule(Rule):
    """Emits a signal for every file whose path matches one of the globs."""

    reads_content = False

    def __init__(self, signal_id: str, confidence: float, globs: Sequence[str]) -> None:
        super().__init__(signal_id, confidence)
        self.globs = tuple(globs)

    @classmethod
    def from_options(cls, signal_id: str, confidence: float, options: Mapping[str, Any]) -> "FileNameRule":
        globs = options.get("globs")
        if not isinstance(globs, list) or not globs:
            raise CatalogueError(f"File rule '{signal_id}' needs a non-empty 'globs' list")
        return cls(signal_id, confidence, [str(item) for item in globs])

    def applies_to(self, entry: InventoryEntry) -> bool:
        return path_matches(entry.path, self.globs)

    def evaluate(self, entry: InventoryEntry, source: FileSource) -> Iterable[Signal]:
        return [self._signal(entry, entry.path)]
