"""Rate limiter interfaces.

Endpoints depend on this abstraction (not the concrete implementation) so the
in-process table can later be swapped for a shared store (e.g., Redis) with
the same consume() contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch milliseconds when the current window expires.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None = None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def consume(self, key: str) -> RateLimitResult:
        """Count one request against the budget of ``key``.

        Args:
            key: Caller identity, already normalized (e.g., client IP).

        Returns:
            RateLimitResult describing whether it was allowed. A denial is a
            normal result, not an exception.
        """
        raise NotImplementedError
