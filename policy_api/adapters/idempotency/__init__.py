"""Idempotency store adapters for workflow replay."""

from policy_api.adapters.idempotency.base import (
    AbstractIdempotencyStore,
    IdempotencyEntry,
    build_idempotency_key,
)
from policy_api.adapters.idempotency.in_memory import InMemoryIdempotencyStore

__all__ = [
    "AbstractIdempotencyStore",
    "IdempotencyEntry",
    "InMemoryIdempotencyStore",
    "build_idempotency_key",
]
