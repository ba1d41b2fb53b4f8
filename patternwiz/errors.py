"""Error taxonomy for the analysis pipeline."""

from __future__ import annotations


class PatternWizError(RuntimeError):
    """Base class for errors raised by patternwiz."""


class FilesystemError(PatternWizError):
    """Raised when the project root or the output directory is unusable."""


class CatalogueError(PatternWizError):
    """Raised when a technology, pattern, or recommendation catalogue is invalid."""


class ParseError(PatternWizError):
    """Raised for a single file that cannot be read or parsed.

    The signal extractor recovers from this locally: the file contributes no
    signals and a warning is attached to the report.
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class AnalysisCancelled(PatternWizError):
    """Raised when a run is interrupted through its cancellation token."""


__all__ = [
    "AnalysisCancelled",
    "CatalogueError",
    "FilesystemError",
    "ParseError",
    "PatternWizError",
]
