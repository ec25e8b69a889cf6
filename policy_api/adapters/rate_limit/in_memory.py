"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running N workers multiplies the effective limit by N.
- Fixed window: a caller can pass up to 2x the limit across a window
  boundary (end of one window, start of the next). This is accepted.
- No timer thread: lapsed records are swept when the table grows past
  ``sweep_threshold`` entries.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from policy_api.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult

DEFAULT_SWEEP_THRESHOLD = 10_000


@dataclass
class _WindowRecord:
    count: int
    reset_at: int


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed window per key.

    The window for a key opens on its first request and lasts ``window_ms``.
    Once it has lapsed the record is replaced by a fresh one rather than
    incremented. Every instance owns its own table, so limiters built for
    different endpoint classes never drain each other's quota.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_ms: int,
        sweep_threshold: int = DEFAULT_SWEEP_THRESHOLD,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of requests allowed per window.
            window_ms: Window length in milliseconds.
            sweep_threshold: Table size above which lapsed records are swept.
            clock: Time source returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_ms are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_ms < 1:
            raise ValueError("window_ms must be >= 1")

        self._limit = limit
        self._window_ms = window_ms
        self._sweep_threshold = sweep_threshold
        self._clock = clock
        self._lock = threading.RLock()
        self._records: dict[str, _WindowRecord] = {}

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_ms(self) -> int:
        return self._window_ms

    def __len__(self) -> int:
        return len(self._records)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _sweep_locked(self, now_ms: int) -> None:
        lapsed = [key for key, record in self._records.items() if record.reset_at <= now_ms]
        for key in lapsed:
            del self._records[key]

    def consume(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and decide whether it may proceed.

        The table is mutated on every call, denials included: a rejected
        attempt still counts against the window.

        Args:
            key: Caller identity. Normalization is the caller's job.

        Returns:
            RateLimitResult with the allowance decision and quota metadata.
        """
        now_ms = self._now_ms()

        with self._lock:
            if len(self._records) > self._sweep_threshold:
                self._sweep_locked(now_ms)

            record = self._records.get(key)
            if record is None or record.reset_at <= now_ms:
                record = _WindowRecord(count=1, reset_at=now_ms + self._window_ms)
                self._records[key] = record
                return RateLimitResult(
                    allowed=True,
                    limit=self._limit,
                    remaining=self._limit - 1,
                    reset_at=record.reset_at,
                )

            record.count += 1

            if record.count > self._limit:
                retry_after = math.ceil((record.reset_at - now_ms) / 1000)
                return RateLimitResult(
                    allowed=False,
                    limit=self._limit,
                    remaining=0,
                    reset_at=record.reset_at,
                    retry_after_seconds=retry_after,
                )

            return RateLimitResult(
                allowed=True,
                limit=self._limit,
                remaining=self._limit - record.count,
                reset_at=record.reset_at,
            )
