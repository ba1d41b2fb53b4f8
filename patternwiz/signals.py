"""Signal extraction: apply every rule to every inventory entry."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Tuple

from .cancellation import CancellationToken
from .errors import ParseError
from .logging import get_logger
from .models import AnalysisWarning, Inventory, InventoryEntry, Signal
from .rules import FileSource, FileTooLarge, Rule


@dataclass(frozen=True)
class ExtractionResult:
    signals: Tuple[Signal, ...]
    warnings: Tuple[AnalysisWarning, ...]

    def ids(self) -> set[str]:
        return {signal.id for signal in self.signals}


class SignalExtractor:
    """Evaluates a rule registry against an inventory.

    Per-file failures are recovered locally: a file that cannot be read or
    parsed contributes no signals and is reported as a warning. Oversized files
    keep their path-only signals.
    """

    def __init__(
        self,
        rules: Sequence[Rule],
        *,
        max_file_bytes: int = 1_048_576,
        token: CancellationToken | None = None,
    ) -> None:
        self.rules = list(rules)
        self.max_file_bytes = max_file_bytes
        self.token = token
        self.logger = get_logger("signals")

    def extract(self, inventory: Inventory) -> ExtractionResult:
        root = Path(inventory.root)
        signals: List[Signal] = []
        warnings: List[AnalysisWarning] = []

        for entry in inventory.entries:
            if self.token is not None:
                self.token.raise_if_cancelled()
            applicable = [rule for rule in self.rules if rule.applies_to(entry)]
            if not applicable:
                continue

            source = FileSource(root, entry, max_bytes=self.max_file_bytes)
            path_signals: List[Signal] = []
            content_signals: List[Signal] = []
            try:
                for rule in applicable:
                    if not rule.reads_content:
                        path_signals.extend(_evaluate(rule, entry, source))
                for rule in applicable:
                    if rule.reads_content:
                        content_signals.extend(_evaluate(rule, entry, source))
            except FileTooLarge as exc:
                self.logger.debug("Skipping content checks for %s: %s", entry.path, exc.reason)
                warnings.append(AnalysisWarning(path=entry.path, reason=exc.reason))
                signals.extend(path_signals)
                continue
            except ParseError as exc:
                self.logger.warning("Skipping %s: %s", entry.path, exc.reason)
                warnings.append(AnalysisWarning(path=entry.path, reason=exc.reason))
                continue

            signals.extend(path_signals)
            signals.extend(content_signals)

        ordered = sorted(signals, key=lambda item: (item.id, item.path, item.evidence))
        self.logger.debug("Extracted %d signals from %d files", len(ordered), len(inventory.entries))
        return ExtractionResult(
            signals=tuple(ordered),
            warnings=tuple(sorted(warnings, key=lambda item: (item.path, item.reason))),
        )


def _evaluate(rule: Rule, entry: InventoryEntry, source: FileSource) -> List[Signal]:
    """Run one rule, reporting any failure as a ParseError for this file."""
    try:
        return list(rule.evaluate(entry, source))
    except ParseError:
        raise
    except Exception as exc:
        raise ParseError(entry.path, f"rule {rule.signal_id} failed: {exc}") from exc


__all__ = ["ExtractionResult", "SignalExtractor"]
