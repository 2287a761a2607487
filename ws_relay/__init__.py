"""
WebSocket Relay.

A real-time message relay: accepts WebSocket connections, gives each an
identity, hands inbound messages to a pluggable RelayHandler and lets the
handler send to one client or broadcast to many.

STRUCTURE:
- ws_relay.server: RelayServer (dispatcher between transports and a handler)
- ws_relay.main: FastAPI application factory and uvicorn entry point
- ws_relay.client: RelayClient with automatic reconnect
- ws_relay.apps: Handler implementations (demo chat room)
- ws_relay.components: Registry, routing helpers, endpoint, metrics
"""

__version__ = "0.1.0"

from ws_relay.components.broadcast.helpers import RoutingHelpers
from ws_relay.components.core.protocol import Envelope, MessageContext, RelayHandler
from ws_relay.server import RelayServer

__all__ = [
    "__version__",
    "Envelope",
    "MessageContext",
    "RelayHandler",
    "RelayServer",
    "RoutingHelpers",
]
