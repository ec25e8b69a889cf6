"""Unit tests for the in-memory idempotency store and key derivation."""

from unittest.mock import Mock

import pytest

from policy_api.adapters.idempotency import InMemoryIdempotencyStore, build_idempotency_key


def _key(**overrides) -> str:
    fields = {
        "ticket_id": "ZD-1",
        "workflow_type": "refund",
        "vendor": "adobe",
        "days_since_purchase": 5,
        "region": "US",
        "plan": "individual",
    }
    fields.update(overrides)
    return build_idempotency_key(**fields)


class TestKeyDerivation:
    def test_derived_key_joins_fields_in_order(self) -> None:
        assert _key() == "ZD-1:refund:adobe:5:US:individual"

    def test_days_change_the_key(self) -> None:
        assert _key(days_since_purchase=5) != _key(days_since_purchase=6)

    def test_missing_days_leave_an_empty_slot(self) -> None:
        assert _key(workflow_type="cancel", days_since_purchase=None) == "ZD-1:cancel:adobe::US:individual"

    def test_zero_days_is_not_empty(self) -> None:
        assert _key(days_since_purchase=0) == "ZD-1:refund:adobe:0:US:individual"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("ticket_id", "ZD-2"),
            ("workflow_type", "return"),
            ("vendor", "canva"),
            ("region", "CA"),
            ("plan", "family"),
        ],
    )
    def test_any_field_change_changes_the_key(self, field: str, value: str) -> None:
        assert _key(**{field: value}) != _key()

    def test_explicit_key_is_used_verbatim(self) -> None:
        assert _key(explicit_key="caller-key-1") == "caller-key-1"

    def test_empty_explicit_key_falls_back_to_derivation(self) -> None:
        assert _key(explicit_key="") == "ZD-1:refund:adobe:5:US:individual"


class TestInMemoryIdempotencyStore:
    def test_put_then_get_returns_equal_response(self) -> None:
        store = InMemoryIdempotencyStore(clock=Mock(return_value=1000.0))
        store.put("ZD-1:refund:adobe:5:US:individual", {"verdict": "ALLOWED"})

        entry = store.get("ZD-1:refund:adobe:5:US:individual")

        assert entry is not None
        assert entry.response == {"verdict": "ALLOWED"}
        assert entry.expires_at == 1000.0 + 24 * 60 * 60
        assert store.get("ZD-1:refund:adobe:6:US:individual") is None

    def test_stored_response_is_a_deep_copy(self) -> None:
        store = InMemoryIdempotencyStore()
        response = {"action": {"zendesk_tags": ["decide"]}}
        store.put("k", response)

        response["action"]["zendesk_tags"].append("mutated")

        assert store.get("k").response == {"action": {"zendesk_tags": ["decide"]}}

    def test_entry_expires_at_ttl(self) -> None:
        clock = Mock(return_value=1000.0)
        store = InMemoryIdempotencyStore(ttl_seconds=60, clock=clock)
        store.put("k", {"ok": True})

        clock.return_value = 1059.9
        assert store.get("k") is not None

        clock.return_value = 1060.0
        assert store.get("k") is None
        assert len(store) == 0

    def test_put_purges_expired_entries(self) -> None:
        clock = Mock(return_value=1000.0)
        store = InMemoryIdempotencyStore(ttl_seconds=60, clock=clock)
        store.put("old-1", {"n": 1})
        store.put("old-2", {"n": 2})

        clock.return_value = 1100.0
        store.put("new", {"n": 3})

        assert len(store) == 1
        assert store.stats()["evictions"] == 2

    def test_purge_expired_returns_dropped_count(self) -> None:
        clock = Mock(return_value=1000.0)
        store = InMemoryIdempotencyStore(ttl_seconds=60, clock=clock)
        store.put("a", {})
        clock.return_value = 1030.0
        store.put("b", {})

        clock.return_value = 1070.0
        assert store.purge_expired() == 1
        assert store.get("b") is not None

    def test_last_writer_wins_on_racing_puts(self) -> None:
        store = InMemoryIdempotencyStore()

        # Both requests miss before either stores
        assert store.get("k") is None
        assert store.get("k") is None
        store.put("k", {"writer": "first"})
        store.put("k", {"writer": "second"})

        assert store.get("k").response == {"writer": "second"}

    def test_stats_count_hits_and_misses(self) -> None:
        store = InMemoryIdempotencyStore()
        store.get("missing")
        store.put("k", {})
        store.get("k")

        stats = store.stats()

        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["entries"] == 1
        assert stats["ttl_seconds"] == 86400

    def test_invalid_ttl(self) -> None:
        with pytest.raises(ValueError):
            InMemoryIdempotencyStore(ttl_seconds=0)
