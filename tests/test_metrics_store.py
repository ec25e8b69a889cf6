"""Unit tests for the in-memory event metrics store."""

from unittest.mock import Mock

import pytest

from policy_api.adapters.metrics import InMemoryMetricsStore

NOW = 1_700_000_000.0


@pytest.fixture
def clock() -> Mock:
    return Mock(return_value=NOW)


@pytest.fixture
def store(clock) -> InMemoryMetricsStore:
    return InMemoryMetricsStore(max_events=5, clock=clock)


def test_empty_snapshot(store) -> None:
    snapshot = store.snapshot()

    assert snapshot["total_events"] == 0
    assert snapshot["events_last_24h"] == 0
    assert snapshot["totals_by_event"] == {}
    assert snapshot["updated_at"] is None


def test_windows_count_by_age(store) -> None:
    store.record("playground_run", ts=NOW - 60)
    store.record("playground_run", ts=NOW - 3 * 60 * 60)
    store.record("signin_click", ts=NOW - 2 * 24 * 60 * 60)
    store.record("signin_click", ts=NOW - 30 * 24 * 60 * 60)

    snapshot = store.snapshot()

    assert snapshot["total_events"] == 4
    assert snapshot["events_last_hour"] == 1
    assert snapshot["events_last_24h"] == 2
    assert snapshot["events_last_7d"] == 3
    assert snapshot["totals_by_event"] == {"playground_run": 2, "signin_click": 2}
    assert snapshot["by_event_24h"] == {"playground_run": 2}
    assert snapshot["updated_at"].startswith("2023-11-14T")


def test_buffer_is_bounded_but_totals_are_not(store) -> None:
    for _ in range(8):
        store.record("demo_flow_run")

    snapshot = store.snapshot()

    assert len(store) == 5
    assert snapshot["recent_buffer_size"] == 5
    assert snapshot["events_last_hour"] == 5
    assert snapshot["total_events"] == 8


def test_long_event_names_are_truncated(store) -> None:
    store.record("nav_" + "x" * 100)

    (name,) = store.snapshot()["totals_by_event"]
    assert len(name) == 64


def test_rejects_empty_buffer() -> None:
    with pytest.raises(ValueError):
        InMemoryMetricsStore(max_events=0)
