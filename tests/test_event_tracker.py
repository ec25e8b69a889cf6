"""Tests for client event validation and tracking."""

import logging

import pytest

from policy_api.adapters.metrics import InMemoryMetricsStore
from policy_api.core.errors import ForbiddenAppError, ValidationAppError
from policy_api.services.event_tracker import (
    EventTracker,
    is_allowed_event,
    is_allowed_origin,
    parse_allowed_origins,
    sanitize_props,
)


@pytest.fixture
def tracker() -> EventTracker:
    return EventTracker(InMemoryMetricsStore())


@pytest.mark.parametrize(
    "origin,allowed",
    [
        ("https://decide.fyi", True),
        ("https://refund.decide.fyi", True),
        ("http://localhost:3000", True),
        ("https://my-branch-decide.vercel.app", True),
        ("https://decide.fyi.evil.com", False),
        ("https://example.com", False),
        ("not a url", False),
    ],
)
def test_default_origins(origin: str, allowed: bool) -> None:
    assert is_allowed_origin(origin) is allowed


def test_configured_origins_replace_defaults() -> None:
    allowed = parse_allowed_origins("https://app.example.com, http://localhost:8080/")

    assert is_allowed_origin("https://APP.example.com", allowed) is True
    assert is_allowed_origin("http://localhost:8080", allowed) is True
    assert is_allowed_origin("https://decide.fyi", allowed) is False


def test_empty_origin_list_means_defaults() -> None:
    assert parse_allowed_origins(" , ") is None


@pytest.mark.parametrize(
    "event,allowed",
    [
        ("playground_run", True),
        ("pricing_team_cta", True),
        ("nav_docs_click", True),
        ("demo_", False),
        ("Pricing_pro_cta", False),
        ("checkout_started", False),
    ],
)
def test_event_vocabulary(event: str, allowed: bool) -> None:
    assert is_allowed_event(event) is allowed


def test_sanitize_props_trims_keys_and_values() -> None:
    raw = {"k" * 60: "v" * 300, "count": 2, "flag": True, "missing": None, "nested": {"a": [1, 2]}}

    props = sanitize_props(raw)

    assert props["k" * 48] == "v" * 240
    assert props["count"] == 2
    assert props["flag"] is True
    assert props["missing"] is None
    assert props["nested"] == '{"a": [1, 2]}'


def test_sanitize_props_keeps_first_twenty() -> None:
    props = sanitize_props({f"p{idx}": idx for idx in range(30)})

    assert list(props) == [f"p{idx}" for idx in range(20)]


@pytest.mark.parametrize("raw", [None, "text", ["a"]])
def test_sanitize_props_ignores_non_objects(raw) -> None:
    assert sanitize_props(raw) == {}


class TestEventTracker:
    def test_track_counts_and_logs(self, tracker, caplog) -> None:
        with caplog.at_level(logging.INFO, logger="policy_api.services.event_tracker"):
            event = tracker.track(
                {"event": "pricing_pro_cta", "props": {"plan": "pro"}},
                client_ip="203.0.113.5",
                user_agent="Mozilla/5.0",
            )

        assert event == "pricing_pro_cta"
        assert tracker.metrics.snapshot()["totals_by_event"] == {"pricing_pro_cta": 1}
        record = next(r for r in caplog.records if r.getMessage() == "client_event")
        assert record.event_name == "pricing_pro_cta"
        assert record.props == {"plan": "pro"}

    @pytest.mark.parametrize("body", [{}, {"event": ""}, {"event": 7}])
    def test_missing_event(self, tracker, body) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            tracker.track(body, client_ip="1.1.1.1")
        assert exc_info.value.code == "invalid_event"

    def test_unknown_event_is_not_counted(self, tracker) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            tracker.track({"event": "drop_table"}, client_ip="1.1.1.1")

        assert exc_info.value.code == "event_not_allowed"
        assert tracker.metrics.snapshot()["total_events"] == 0

    def test_origin_check(self, tracker) -> None:
        tracker.check_origin("")
        tracker.check_origin("https://www.decide.fyi")

        with pytest.raises(ForbiddenAppError) as exc_info:
            tracker.check_origin("https://phish.example")
        assert exc_info.value.code == "origin_not_allowed"
