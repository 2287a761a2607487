"""
WebSocket Endpoint Mixins.

Single-concern helpers for ConnectionEndpoint:

    MessageValidationMixin: Inbound frame size limit (closes with 1009)
    ConnectionLifecycleMixin: Connect / disconnect / rejection log lines and
        the matching audit events

Usage:
    class ConnectionEndpoint(MessageValidationMixin, ConnectionLifecycleMixin):
        ...
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from fastapi import WebSocket

from shared.config.logging import get_logger
from ws_relay.components.core.constants import WSCloseCode

if TYPE_CHECKING:
    from ws_relay.components.core.context import WebSocketContext
    from ws_relay.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


# =============================================================================
# Protocols for mixin dependencies
# =============================================================================


class HasWebSocket(Protocol):
    websocket: WebSocket
    endpoint_name: str
    context: "WebSocketContext | None"


class HasSizeLimit(HasWebSocket, Protocol):
    max_message_size: int
    metrics: "MetricsCollector"


# =============================================================================
# MessageValidationMixin
# =============================================================================


class MessageValidationMixin:
    """
    Enforces the inbound frame size limit.

    Requires:
        - self.websocket, self.endpoint_name, self.context
        - self.max_message_size: int
        - self.metrics: MetricsCollector
    """

    async def validate_message_size(self: HasSizeLimit, data: str | bytes) -> bool:
        """
        Returns:
            True if the frame is within the limit. Otherwise the connection
            is closed with MESSAGE_TOO_BIG and False is returned.
        """
        size = len(data)
        if size <= self.max_message_size:
            return True

        logger.warning(
            "Message size exceeded limit",
            endpoint=self.endpoint_name,
            identifier=self.context.identifier if self.context else "unknown",
            size=size,
            max_size=self.max_message_size,
        )
        self.metrics.increment_oversized()
        await self.websocket.close(code=WSCloseCode.MESSAGE_TOO_BIG, reason="Message too large")
        return False


# =============================================================================
# ConnectionLifecycleMixin
# =============================================================================


class ConnectionLifecycleMixin:
    """
    Lifecycle logging: one application log line plus one audit event per
    transition.

    Requires:
        - self.endpoint_name: str
        - self.context: WebSocketContext | None
    """

    def log_connect(self: HasWebSocket, **extra: Any) -> None:
        _log_lifecycle(self, logging.INFO, "Client connected", "CONNECT", **extra)

    def log_disconnect(self: HasWebSocket, reason: str = "client_disconnect") -> None:
        duration = self.context.duration() if self.context else None
        _log_lifecycle(
            self,
            logging.INFO,
            "Client disconnected",
            "DISCONNECT",
            reason=reason,
            duration=duration,
        )

    def log_connect_rejected(self: HasWebSocket, reason: str, close_code: int | None = None) -> None:
        _log_lifecycle(
            self,
            logging.WARNING,
            "Connection rejected",
            "CONNECT_REJECTED",
            reason=reason,
            close_code=close_code,
        )


def _log_lifecycle(
    endpoint: HasWebSocket,
    level: int,
    message: str,
    event_type: str,
    **fields: Any,
) -> None:
    fields = {k: v for k, v in fields.items() if v is not None}
    log = logger.warning if level >= logging.WARNING else logger.info

    context = endpoint.context
    if context is None:
        log(message, endpoint=endpoint.endpoint_name, **fields)
        return

    log(message, **context.to_audit_dict(event_type, **fields))
    context.audit(event_type, **fields)


__all__ = [
    "MessageValidationMixin",
    "ConnectionLifecycleMixin",
    # Protocols
    "HasWebSocket",
    "HasSizeLimit",
]
