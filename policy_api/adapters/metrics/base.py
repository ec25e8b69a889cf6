"""Metrics store interface for client-side events."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class AbstractMetricsStore(ABC):
    """Counts tracked events and summarizes them over recent windows."""

    source: str = "unknown"

    @abstractmethod
    def record(self, event: str, ts: float | None = None) -> None:
        """Count one occurrence of ``event`` at UNIX time ``ts`` (now if None)."""
        raise NotImplementedError

    @abstractmethod
    def snapshot(self) -> dict[str, Any]:
        """Return totals and windowed counts as a JSON-serializable dict."""
        raise NotImplementedError
