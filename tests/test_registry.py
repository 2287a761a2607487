"""
Tests for the connection registry.
"""

import pytest
from starlette.websockets import WebSocketState

from conftest import make_record
from ws_relay.components.connection.registry import ConnectionRegistry, is_ws_connected


class TestConnectionRegistry:

    def test_register_and_get(self):
        registry = ConnectionRegistry()
        record = make_record("a")

        registry.register(record)

        assert registry.get("a") is record
        assert "a" in registry
        assert registry.count() == 1
        assert len(registry) == 1

    def test_register_duplicate_raises(self):
        registry = ConnectionRegistry()
        registry.register(make_record("a"))

        with pytest.raises(ValueError):
            registry.register(make_record("a"))
        assert registry.count() == 1

    def test_unregister_returns_record_once(self):
        registry = ConnectionRegistry()
        record = make_record("a")
        registry.register(record)

        assert registry.unregister("a") is record
        assert registry.unregister("a") is None
        assert registry.get("a") is None
        assert registry.count() == 0

    def test_unregister_unknown_is_noop(self):
        registry = ConnectionRegistry()
        registry.register(make_record("a"))

        assert registry.unregister("missing") is None
        assert registry.count() == 1

    def test_for_each_visits_every_record(self):
        registry = ConnectionRegistry()
        for client_id in ("a", "b", "c"):
            registry.register(make_record(client_id))

        seen = []
        visited = registry.for_each(lambda record: seen.append(record.client_id))

        assert visited == 3
        assert sorted(seen) == ["a", "b", "c"]

    def test_for_each_continues_after_visitor_error(self):
        """A failing visitor for one record must not abort the iteration."""
        registry = ConnectionRegistry()
        for client_id in ("a", "b", "c"):
            registry.register(make_record(client_id))

        seen = []

        def visitor(record):
            if record.client_id == "b":
                raise RuntimeError("dead peer")
            seen.append(record.client_id)

        visited = registry.for_each(visitor)

        assert visited == 2
        assert sorted(seen) == ["a", "c"]

    def test_for_each_tolerates_unregister_during_iteration(self):
        registry = ConnectionRegistry()
        for client_id in ("a", "b", "c"):
            registry.register(make_record(client_id))

        registry.for_each(lambda record: registry.unregister(record.client_id))

        assert registry.count() == 0

    def test_snapshot_is_a_copy(self):
        registry = ConnectionRegistry()
        registry.register(make_record("a"))

        snapshot = registry.snapshot()
        registry.unregister("a")

        assert [r.client_id for r in snapshot] == ["a"]
        assert registry.client_ids() == []

    def test_stats(self):
        registry = ConnectionRegistry()
        registry.register(make_record("a"))
        registry.register(make_record("b"))
        registry.unregister("a")

        assert registry.get_stats() == {
            "active_connections": 1,
            "total_registered": 2,
            "total_unregistered": 1,
        }


class TestWritability:

    def test_connected_record_is_writable(self):
        assert make_record("a").is_writable

    def test_disconnected_client_is_not_writable(self):
        record = make_record("a")
        record.websocket.client_state = WebSocketState.DISCONNECTED

        assert not is_ws_connected(record.websocket)
        assert not record.is_writable

    def test_closed_outbound_is_not_writable(self):
        record = make_record("a")
        record.outbound.close()

        assert not record.is_writable
