"""
Tests for the routing helpers (send_to, broadcast_all, broadcast_except).
"""

import asyncio
import json
from unittest.mock import patch

import pytest
from starlette.websockets import WebSocketState

from conftest import drain, make_record
from ws_relay.components.broadcast.helpers import RoutingHelpers
from ws_relay.components.connection.registry import ConnectionRegistry
from ws_relay.components.core.protocol import Envelope
from ws_relay.components.metrics.collector import MetricsCollector

MESSAGE = {"type": "systemMessage", "payload": {"text": "hello"}}


@pytest.fixture
def registry():
    registry = ConnectionRegistry()
    for client_id in ("a", "b", "c"):
        registry.register(make_record(client_id))
    return registry


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def helpers(registry, metrics):
    return RoutingHelpers(registry, metrics)


class TestSendTo:

    def test_send_to_queues_for_target_only(self, registry, helpers):
        assert helpers.send_to("b", MESSAGE) is True

        assert [json.loads(f) for f in drain(registry.get("b"))] == [MESSAGE]
        assert drain(registry.get("a")) == []
        assert drain(registry.get("c")) == []

    def test_send_to_unknown_is_silent(self, registry, helpers, metrics):
        assert helpers.send_to("nonexistent", MESSAGE) is False

        for record in registry.snapshot():
            assert drain(record) == []
        assert metrics.get_snapshot()["sends_dropped"] == 1

    def test_send_to_non_writable_drops(self, registry, helpers):
        registry.get("b").websocket.application_state = WebSocketState.DISCONNECTED

        assert helpers.send_to("b", MESSAGE) is False
        assert drain(registry.get("b")) == []

    def test_send_to_accepts_envelope(self, registry, helpers):
        helpers.send_to("a", Envelope(type="welcome", payload={"clientId": "a"}))

        assert json.loads(drain(registry.get("a"))[0]) == {
            "type": "welcome",
            "payload": {"clientId": "a"},
        }


class TestBroadcast:

    def test_broadcast_all_reaches_everyone(self, registry, helpers):
        assert helpers.broadcast_all(MESSAGE) == 3

        for record in registry.snapshot():
            assert [json.loads(f) for f in drain(record)] == [MESSAGE]

    def test_broadcast_all_skips_non_writable(self, registry, helpers, metrics):
        """A dead peer is skipped and the others still receive the message."""
        registry.get("b").websocket.client_state = WebSocketState.DISCONNECTED

        assert helpers.broadcast_all(MESSAGE) == 2

        assert len(drain(registry.get("a"))) == 1
        assert drain(registry.get("b")) == []
        assert len(drain(registry.get("c"))) == 1

        snapshot = metrics.get_snapshot()
        assert snapshot["broadcasts_recipients_reached"] == 2
        assert snapshot["broadcasts_recipients_skipped"] == 1

    def test_broadcast_all_skips_backpressured(self):
        registry = ConnectionRegistry()
        full = make_record("full", maxsize=1)
        ok = make_record("ok")
        registry.register(full)
        registry.register(ok)
        helpers = RoutingHelpers(registry)

        assert helpers.broadcast_all(MESSAGE) == 2
        assert helpers.broadcast_all(MESSAGE) == 1

        assert len(drain(full)) == 1
        assert len(drain(ok)) == 2
        assert full.outbound.dropped_count == 1

    def test_broadcast_except_excludes_one(self, registry, helpers):
        assert helpers.broadcast_except("a", MESSAGE) == 2

        assert drain(registry.get("a")) == []
        assert len(drain(registry.get("b"))) == 1
        assert len(drain(registry.get("c"))) == 1

    def test_broadcast_except_single_connection(self):
        registry = ConnectionRegistry()
        registry.register(make_record("only"))
        helpers = RoutingHelpers(registry)

        assert helpers.broadcast_except("only", MESSAGE) == 0
        assert drain(registry.get("only")) == []

    def test_broadcast_on_empty_registry(self):
        helpers = RoutingHelpers(ConnectionRegistry())

        assert helpers.broadcast_all(MESSAGE) == 0

    def test_broadcast_serializes_once(self, registry, helpers):
        with patch(
            "ws_relay.components.broadcast.helpers.serialize_message",
            wraps=lambda m: json.dumps(m),
        ) as serialize:
            helpers.broadcast_all(MESSAGE)

        assert serialize.call_count == 1
        frames = [drain(record)[0] for record in registry.snapshot()]
        assert frames[0] is frames[1] is frames[2]

    @pytest.mark.asyncio
    async def test_stalled_peer_does_not_delay_others(self, registry, helpers):
        """Writes are fire-and-forget: a peer whose send never completes holds up nobody."""
        stalled = registry.get("b")
        never = asyncio.Event()

        async def stall(data):
            await never.wait()

        stalled.websocket.send_text.side_effect = stall

        for record in registry.snapshot():
            record.outbound.start()

        helpers.broadcast_all(MESSAGE)
        helpers.broadcast_all(MESSAGE)
        await asyncio.sleep(0.05)

        assert registry.get("a").websocket.send_text.await_count == 2
        assert registry.get("c").websocket.send_text.await_count == 2
        assert stalled.outbound.sent_count == 0

        for record in registry.snapshot():
            record.outbound.close()
