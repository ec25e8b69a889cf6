"""Idempotency store interfaces and key derivation.

Workflow endpoints depend on this abstraction so the per-process table can be
replaced by a shared key-value store without touching the HTTP layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

KEY_DELIMITER = ":"


@dataclass(frozen=True)
class IdempotencyEntry:
    """A stored response and the UNIX time (seconds) it stops being valid."""

    key: str
    response: dict[str, Any]
    expires_at: float


class AbstractIdempotencyStore(ABC):
    """Interface for idempotency stores.

    The get/put pair is not atomic. Two requests racing on the same key can
    both miss and both compute; the last put wins.
    """

    @abstractmethod
    def get(self, key: str) -> IdempotencyEntry | None:
        """Return the unexpired entry stored under ``key``, or None."""
        raise NotImplementedError

    @abstractmethod
    def put(self, key: str, response: dict[str, Any]) -> IdempotencyEntry:
        """Store ``response`` under ``key`` for the configured TTL.

        Callers only put after a get miss for the same key.
        """
        raise NotImplementedError


def build_idempotency_key(
    *,
    ticket_id: str,
    workflow_type: str,
    vendor: str,
    days_since_purchase: int | None,
    region: str,
    plan: str,
    explicit_key: str | None = None,
) -> str:
    """Derive the idempotency key for a workflow request.

    An explicit caller key wins verbatim. Otherwise the stable request fields
    are joined in a fixed order, so any difference among them changes the key
    and free-text fields (e.g., the question) never take part.

    Args:
        ticket_id: Support ticket identifier.
        workflow_type: Workflow name (refund, cancel, ...).
        vendor: Normalized vendor key.
        days_since_purchase: Elapsed days, or None when not applicable.
        region: Normalized region code.
        plan: Normalized plan type.
        explicit_key: Caller-supplied key, if any.

    Returns:
        The idempotency key.

    Examples:
        >>> build_idempotency_key(ticket_id="ZD-1", workflow_type="refund",
        ...     vendor="adobe", days_since_purchase=5, region="US", plan="individual")
        'ZD-1:refund:adobe:5:US:individual'
    """
    if explicit_key:
        return explicit_key

    days = "" if days_since_purchase is None else str(days_since_purchase)
    return KEY_DELIMITER.join([ticket_id, workflow_type, vendor, days, region, plan])
