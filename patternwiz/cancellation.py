"""Cooperative cancellation for long-running scans."""

from __future__ import annotations

import threading

from .errors import AnalysisCancelled


class CancellationToken:
    """Flag shared between the caller and the pipeline stages.

    Stages call :meth:`raise_if_cancelled` between files; nothing is persisted
    once a run has been cancelled.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelled("Analysis cancelled before completion")


__all__ = ["CancellationToken"]
