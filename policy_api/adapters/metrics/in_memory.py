"""In-memory event counters backing ``GET /api/metrics``.

Lifetime totals are exact. Windowed counts (last hour, 24h, 7d) come from a
bounded buffer of recent events, so under heavy traffic they only cover the
newest ``max_events`` entries.
"""

from __future__ import annotations

import threading
import time
from collections import Counter, deque
from datetime import datetime, timezone
from typing import Any, Callable

from policy_api.adapters.metrics.base import AbstractMetricsStore

DEFAULT_MAX_EVENTS = 5000
MAX_EVENT_NAME = 64

HOUR_S = 60 * 60
DAY_S = 24 * HOUR_S
WEEK_S = 7 * DAY_S


class InMemoryMetricsStore(AbstractMetricsStore):
    """Thread-safe per-process event counters.

    Attributes:
        max_events: Size of the recent-events buffer.
    """

    source = "in_memory_runtime"

    def __init__(
        self,
        *,
        max_events: int = DEFAULT_MAX_EVENTS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_events < 1:
            raise ValueError("max_events must be >= 1")

        self.max_events = max_events
        self._clock = clock
        self._events: deque[tuple[str, float]] = deque(maxlen=max_events)
        self._totals: Counter[str] = Counter()
        self._updated_at: float | None = None
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._events)

    def record(self, event: str, ts: float | None = None) -> None:
        name = (event or "unknown")[:MAX_EVENT_NAME]
        now = self._clock()
        with self._lock:
            self._events.append((name, now if ts is None else ts))
            self._totals[name] += 1
            self._updated_at = now

    def snapshot(self) -> dict[str, Any]:
        now = self._clock()
        last_hour = last_day = last_week = 0
        by_event_24h: Counter[str] = Counter()

        with self._lock:
            for name, ts in self._events:
                age = now - ts
                if age <= HOUR_S:
                    last_hour += 1
                if age <= DAY_S:
                    last_day += 1
                    by_event_24h[name] += 1
                if age <= WEEK_S:
                    last_week += 1

            return {
                "total_events": sum(self._totals.values()),
                "events_last_hour": last_hour,
                "events_last_24h": last_day,
                "events_last_7d": last_week,
                "recent_buffer_size": len(self._events),
                "totals_by_event": dict(self._totals),
                "by_event_24h": dict(by_event_24h),
                "updated_at": _iso(self._updated_at),
            }


def _iso(ts: float | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()
