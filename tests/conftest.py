"""
Pytest configuration and fixtures for relay tests.
"""

import logging
from dataclasses import dataclass, field
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketState

from shared.config.settings import Settings
from ws_relay.components.connection.outbound import OutboundChannel
from ws_relay.components.connection.registry import ConnectionRecord
from ws_relay.main import create_app


# =============================================================================
# Handlers
# =============================================================================


@dataclass
class EchoState:
    connects: list[str] = field(default_factory=list)
    disconnects: list[str] = field(default_factory=list)
    messages: list[tuple[str, str]] = field(default_factory=list)


class EchoHandler:
    """
    Minimal handler used to observe the dispatcher.

    Sends welcome on connect and answers sendMessage with a broadcast
    systemMessage "echo:<text>". Records every callback.
    """

    def __init__(self):
        self.state: EchoState | None = None

    def create_initial_state(self) -> EchoState:
        self.state = EchoState()
        return self.state

    def on_connect(self, state, client_id, helpers):
        state.connects.append(client_id)
        helpers.send_to(client_id, {"type": "welcome", "payload": {"clientId": client_id}})

    def on_message(self, state, context):
        state.messages.append((context.client_id, context.message.type))
        if context.message.type == "sendMessage":
            text = context.message.payload["text"]
            context.helpers.broadcast_all(
                {"type": "systemMessage", "payload": {"text": f"echo:{text}"}}
            )
        elif context.message.type == "boom":
            raise RuntimeError("handler failure")

    def on_disconnect(self, state, client_id, helpers):
        state.disconnects.append(client_id)


# =============================================================================
# Fake transports
# =============================================================================


def make_fake_websocket(origin: str | None = None) -> MagicMock:
    """A stand-in for a connected Starlette WebSocket."""
    ws = MagicMock()
    ws.client_state = WebSocketState.CONNECTED
    ws.application_state = WebSocketState.CONNECTED
    ws.headers = {"origin": origin} if origin else {}
    ws.send_text = AsyncMock()
    ws.close = AsyncMock()
    return ws


def make_record(client_id: str, maxsize: int = 16) -> ConnectionRecord:
    """A registry record whose outbound channel is not started."""
    ws = make_fake_websocket()
    return ConnectionRecord(
        client_id=client_id,
        websocket=ws,
        outbound=OutboundChannel(ws, maxsize=maxsize, name=client_id),
    )


def drain(record: ConnectionRecord) -> list[str]:
    """Pop every frame queued on a record's outbound channel."""
    frames = []
    while not record.outbound.queue.empty():
        frames.append(record.outbound.queue.get_nowait())
    return frames


# =============================================================================
# Application fixtures
# =============================================================================


def make_settings(**overrides) -> Settings:
    values = {
        "environment": "development",
        "debug": True,
        "ws_path": "/",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Undo the root handler swap done by setup_logging() in the app lifespan."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def echo_handler():
    return EchoHandler()


@pytest.fixture
def app(echo_handler):
    return create_app(echo_handler, make_settings())


@pytest.fixture
def client(app):
    """
    Test client sharing one event loop across all WebSocket sessions.
    """
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def relay(app):
    return app.state.relay
