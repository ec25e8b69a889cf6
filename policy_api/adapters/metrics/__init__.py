"""Client event metrics adapters."""

from policy_api.adapters.metrics.base import AbstractMetricsStore
from policy_api.adapters.metrics.in_memory import InMemoryMetricsStore

__all__ = ["AbstractMetricsStore", "InMemoryMetricsStore"]
