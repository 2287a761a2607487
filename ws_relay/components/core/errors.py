"""
Relay exception hierarchy.

Only connection rejection and frame parsing raise. Send failures and
unknown targets are recovered where they happen and never surface as
exceptions to the handler.
"""

from ws_relay.components.core.constants import WSCloseCode

__all__ = ["RelayError", "ConnectionRejectedError", "MessageParseError"]


class RelayError(Exception):
    """Base class for relay errors."""


class ConnectionRejectedError(RelayError, ConnectionError):
    """
    Raised when a new connection cannot be admitted.

    Carries the close code the transport should be closed with, e.g.
    GOING_AWAY during shutdown or SERVER_OVERLOADED at capacity.
    """

    def __init__(self, reason: str, close_code: int = WSCloseCode.SERVER_OVERLOADED):
        super().__init__(reason)
        self.reason = reason
        self.close_code = int(close_code)


class MessageParseError(RelayError, ValueError):
    """Raised when an inbound frame is not a valid message envelope."""

    def __init__(self, message: str, raw: str | bytes | None = None):
        super().__init__(message)
        self.raw = raw
