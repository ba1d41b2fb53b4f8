"""Base classes for signal rules."""

from __future__ import annotations

from abc import ABC, abstractmethod
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterable, List, Sequence

from ..errors import ParseError
from ..models import InventoryEntry, Signal
from .manifests import load_structured, parse_dependencies


class FileTooLarge(ParseError):
    """The file exceeds the configured size limit; content rules are skipped."""


class FileSource:
    """Lazily loaded view of one file, shared by every rule evaluated against it."""

    _UNSET = object()

    def __init__(self, root: Path, entry: InventoryEntry, *, max_bytes: int) -> None:
        self.root = root
        self.entry = entry
        self.max_bytes = max_bytes
        self._text: str | None = None
        self._structured: Any = self._UNSET
        self._dependencies: Dict[str, List[str]] | None = None

    @property
    def text(self) -> str:
        if self._text is None:
            if self.entry.size > self.max_bytes:
                raise FileTooLarge(
                    self.entry.path,
                    f"larger than {self.max_bytes} bytes; content checks skipped",
                )
            try:
                raw = (self.root / self.entry.path).read_bytes()
            except OSError as exc:
                raise ParseError(self.entry.path, f"unreadable ({exc.strerror or exc})") from exc
            try:
                self._text = raw.decode("utf-8-sig")
            except UnicodeDecodeError as exc:
                raise ParseError(self.entry.path, "not valid UTF-8 text") from exc
        return self._text

    @property
    def structured(self) -> Any:
        if self._structured is self._UNSET:
            self._structured = load_structured(self.entry.path, self.text)
        return self._structured

    @property
    def dependencies(self) -> Dict[str, List[str]]:
        if self._dependencies is None:
            self._dependencies = parse_dependencies(self.entry.path, self.text)
        return self._dependencies


def path_matches(path: str, globs: Sequence[str]) -> bool:
    """Match globs against the relative path, or the basename for slash-free globs."""
    name = PurePosixPath(path).name
    for pattern in globs:
        if "/" in pattern:
            if fnmatchcase(path, pattern):
                return True
        elif fnmatchcase(name, pattern):
            return True
    return False


class Rule(ABC):
    """A pure predicate that turns one file into zero or more signals."""

    reads_content = True

    def __init__(self, signal_id: str, confidence: float) -> None:
        self.signal_id = signal_id
        self.confidence = confidence

    @abstractmethod
    def applies_to(self, entry: InventoryEntry) -> bool:
        """Return True when the rule should look at this file."""

    @abstractmethod
    def evaluate(self, entry: InventoryEntry, source: FileSource) -> Iterable[Signal]:
        """Yield signals for the file. May raise ParseError."""

    def _signal(self, entry: InventoryEntry, evidence: str) -> Signal:
        return Signal(
            id=self.signal_id,
            confidence=self.confidence,
            path=entry.path,
            evidence=evidence,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.signal_id!r})"
