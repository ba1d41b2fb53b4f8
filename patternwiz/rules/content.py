"""Rules that search file contents with regular expressions."""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, Sequence

from ..errors import CatalogueError
from ..models import InventoryEntry, Signal
from .base import FileSource, Rule, path_matches

_FLAGS = {
    "ignorecase": re.IGNORECASE,
    "multiline": re.MULTILINE,
    "dotall": re.DOTALL,
}

_EVIDENCE_LIMIT = 80


class ContentRule(Rule):
    """Emits one signal per file whose text matches the pattern."""

    def __init__(
        self,
        signal_id: str,
        confidence: float,
        files: Sequence[str],
        pattern: str,
        flags: int = 0,
    ) -> None:
        super().__init__(signal_id, confidence)
        self.files = tuple(files)
        try:
            self.pattern = re.compile(pattern, flags)
        except re.error as exc:
            raise CatalogueError(f"Content rule '{signal_id}' has an invalid pattern: {exc}") from exc

    @classmethod
    def from_options(cls, signal_id: str, confidence: float, options: Mapping[str, Any]) -> "ContentRule":
        files = options.get("files")
        pattern = options.get("pattern")
        if not isinstance(files, list) or not files:
            raise CatalogueError(f"Content rule '{signal_id}' needs a non-empty 'files' list")
        if not isinstance(pattern, str) or not pattern:
            raise CatalogueError(f"Content rule '{signal_id}' needs a 'pattern'")
        flags = 0
        for name in options.get("flags") or []:
            if name not in _FLAGS:
                raise CatalogueError(f"Content rule '{signal_id}' uses unknown flag '{name}'")
            flags |= _FLAGS[name]
        return cls(signal_id, confidence, [str(item) for item in files], pattern, flags)

    def applies_to(self, entry: InventoryEntry) -> bool:
        return path_matches(entry.path, self.files)

    def evaluate(self, entry: InventoryEntry, source: FileSource) -> Iterable[Signal]:
        text = source.text
        match = self.pattern.search(text)
        if match is None:
            return []
        line = text.count("\n", 0, match.start()) + 1
        snippet = " ".join(match.group(0).split())
        if len(snippet) > _EVIDENCE_LIMIT:
            snippet = snippet[: _EVIDENCE_LIMIT - 3] + "..."
        return [self._signal(entry, f"line {line}: {snippet}")]
