"""
Core WebSocket Relay components.

Foundational components: constants, identifiers, wire envelope and the
handler contract.
"""

from ws_relay.components.core.constants import WSCloseCode, WSConstants
from ws_relay.components.core.context import WebSocketContext, sanitize_log_data
from ws_relay.components.core.errors import (
    ConnectionRejectedError,
    MessageParseError,
    RelayError,
)
from ws_relay.components.core.identity import generate_client_id
from ws_relay.components.core.protocol import (
    Envelope,
    MessageContext,
    RelayHandler,
    error_message,
    parse_envelope,
    serialize_message,
)

__all__ = [
    # Constants
    "WSCloseCode",
    "WSConstants",
    # Context
    "WebSocketContext",
    "sanitize_log_data",
    # Errors
    "RelayError",
    "ConnectionRejectedError",
    "MessageParseError",
    # Identity
    "generate_client_id",
    # Protocol
    "Envelope",
    "MessageContext",
    "RelayHandler",
    "error_message",
    "parse_envelope",
    "serialize_message",
]
