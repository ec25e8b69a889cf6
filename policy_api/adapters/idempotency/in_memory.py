"""In-memory TTL store used to replay workflow responses.

Per-process only: a replay is guaranteed only when the retry lands on the
same process that served the first request.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from typing import Any, Callable

from policy_api.adapters.idempotency.base import AbstractIdempotencyStore, IdempotencyEntry

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60


class InMemoryIdempotencyStore(AbstractIdempotencyStore):
    """Thread-safe, in-memory idempotency store with TTL expiry.

    Expired entries are never returned. They are evicted when a lookup hits
    them and swept out before every put.

    Attributes:
        ttl_seconds: Time-to-live applied to all entries.
    """

    def __init__(
        self,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")

        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, IdempotencyEntry] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryIdempotencyStore(ttl_seconds={self._ttl}, size={len(self._entries)}, "
            f"hits={self._hits}, misses={self._misses}, evictions={self._evictions})"
        )

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def get(self, key: str) -> IdempotencyEntry | None:
        """Retrieve the stored entry if it exists and is not expired.

        Args:
            key: Idempotency key.

        Returns:
            The stored entry or None if not found/expired.
        """

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                logger.debug("idempotency.miss", extra={"reason": "not_found"})
                return None

            if self._clock() >= entry.expires_at:
                self._evict_single(key)
                self._misses += 1
                logger.debug("idempotency.miss", extra={"reason": "expired"})
                return None

            self._hits += 1
            logger.debug("idempotency.hit")
            return entry

    def put(self, key: str, response: dict[str, Any]) -> IdempotencyEntry:
        """Store a deep copy of ``response`` with a fresh TTL.

        Args:
            key: Idempotency key.
            response: JSON-serializable payload to replay later.

        Returns:
            The stored entry.
        """

        with self._lock:
            now = self._clock()
            self._evict_expired_locked(now)
            entry = IdempotencyEntry(
                key=key,
                response=copy.deepcopy(response),
                expires_at=now + self._ttl,
            )
            self._entries[key] = entry

            logger.debug(
                "idempotency.put",
                extra={"size": len(self._entries), "ttl_s": self._ttl},
            )
            return entry

    def purge_expired(self) -> int:
        """Remove every expired entry and return how many were dropped."""

        with self._lock:
            before = len(self._entries)
            self._evict_expired_locked(self._clock())
            return before - len(self._entries)

    def stats(self) -> dict[str, int]:
        """Return lightweight store metrics without exposing payloads."""

        with self._lock:
            return {
                "ttl_seconds": self._ttl,
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _evict_single(self, key: str) -> None:
        if self._entries.pop(key, None) is not None:
            self._evictions += 1

    def _evict_expired_locked(self, now: float) -> None:
        expired_keys = [k for k, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired_keys:
            self._evict_single(key)
