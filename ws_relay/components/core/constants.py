"""
WebSocket Relay Constants.

Centralized constants with documentation explaining the rationale for each value.
"""

from enum import IntEnum
from typing import Final

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "MSG_TYPE_ERROR",
    "ERROR_INVALID_FORMAT",
    "ERROR_HANDLER_FAILED",
]


class WSCloseCode(IntEnum):
    """
    WebSocket close codes used by the relay.

    Standard codes (1000-1999) from RFC 6455.
    """

    NORMAL = 1000  # Normal closure
    GOING_AWAY = 1001  # Server shutting down or client navigating away
    PROTOCOL_ERROR = 1002  # Protocol error
    UNSUPPORTED_DATA = 1003  # Received data type not supported
    POLICY_VIOLATION = 1008  # Generic policy violation
    MESSAGE_TOO_BIG = 1009  # Message too large to process
    SERVER_ERROR = 1011  # Unexpected server error
    SERVER_OVERLOADED = 1013  # Server overloaded, try again later


class WSConstants:
    """
    WebSocket Relay operational constants.

    These are defaults used when no settings object is supplied. At runtime
    create_app() passes values from `shared.config.settings`, which can be
    overridden via environment variables.
    """

    # ==========================================================================
    # Timeout Constants
    # ==========================================================================

    # WS_ACCEPT_TIMEOUT: 5 seconds
    # Rationale: WebSocket handshake should complete within TCP timeout.
    # 5 seconds handles slow networks while rejecting stuck connections.
    WS_ACCEPT_TIMEOUT: Final[float] = 5.0

    # WS_CLOSE_TIMEOUT: 2 seconds
    # Rationale: On shutdown each close frame is sent by a separate task.
    # A peer that never drains its socket must not hold up process exit.
    WS_CLOSE_TIMEOUT: Final[float] = 2.0

    # ==========================================================================
    # Capacity Constants
    # ==========================================================================

    # MAX_TOTAL_CONNECTIONS: 1000
    # Rationale: A single in-memory process. Every connection owns a writer
    # task and a queue, so 1000 keeps memory and fan-out cost bounded.
    MAX_TOTAL_CONNECTIONS: Final[int] = 1000

    # MAX_MESSAGE_SIZE: 64 KB
    # Rationale: Chat-sized envelopes are well under 1 KB. 64 KB leaves room
    # for richer payloads while stopping a single frame from ballooning memory.
    MAX_MESSAGE_SIZE: Final[int] = 64 * 1024

    # OUTBOUND_QUEUE_SIZE: 256 frames
    # Rationale: A healthy peer drains its queue in milliseconds. A peer
    # that falls 256 frames behind is treated as backpressured and further
    # frames to it are dropped (best-effort delivery).
    OUTBOUND_QUEUE_SIZE: Final[int] = 256

    # ==========================================================================
    # Logging Constants
    # ==========================================================================

    # DROP_LOG_INTERVAL: 100
    # Rationale: Log every 100th dropped frame to avoid log spam during
    # overload while still providing visibility.
    DROP_LOG_INTERVAL: Final[int] = 100

    # MAX_LOG_DATA_LENGTH: 200 characters
    # Rationale: Inbound frames are client-controlled. Truncate before logging.
    MAX_LOG_DATA_LENGTH: Final[int] = 200


# Message type and error text sent back to a client over its own connection
MSG_TYPE_ERROR: Final[str] = "error"
ERROR_INVALID_FORMAT: Final[str] = "Invalid message format"
ERROR_HANDLER_FAILED: Final[str] = "Message handling error"

