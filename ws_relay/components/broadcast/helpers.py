"""
Routing Helpers.

The three fan-out primitives handed to every handler callback:

- send_to(client_id, message)
- broadcast_all(message)
- broadcast_except(exclude_id, message)

All are best-effort and fire-and-forget. The message is serialized once per
call and the same string is queued on each recipient's outbound channel.
A recipient that is gone, closing or backpressured is skipped; it never
stops delivery to the others and never raises into the handler.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shared.config.logging import get_logger
from ws_relay.components.core.protocol import OutboundMessage, serialize_message

if TYPE_CHECKING:
    from ws_relay.components.connection.registry import ConnectionRecord, ConnectionRegistry
    from ws_relay.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


class RoutingHelpers:
    """Send and broadcast operations bound to one registry."""

    def __init__(
        self,
        registry: "ConnectionRegistry",
        metrics: "MetricsCollector | None" = None,
    ) -> None:
        self._registry = registry
        self._metrics = metrics

    def send_to(self, client_id: str, message: OutboundMessage) -> bool:
        """
        Send a message to one connection.

        An unknown client_id is not an error: the caller may be racing a
        disconnect. The message is dropped silently.

        Returns:
            True if the message was queued for the connection.
        """
        record = self._registry.get(client_id)
        if record is None:
            logger.debug("send_to unknown client, dropping", target=client_id)
            self._record_targeted(False)
            return False

        if not record.is_writable:
            logger.debug("send_to non-writable client, dropping", target=client_id)
            self._record_targeted(False)
            return False

        queued = record.outbound.send_nowait(serialize_message(message))
        self._record_targeted(queued)
        return queued

    def broadcast_all(self, message: OutboundMessage) -> int:
        """
        Send a message to every registered connection.

        Returns:
            Number of connections the message was queued for.
        """
        return self._broadcast(message, exclude_id=None)

    def broadcast_except(self, exclude_id: str, message: OutboundMessage) -> int:
        """
        Send a message to every registered connection except exclude_id.

        Returns:
            Number of connections the message was queued for.
        """
        return self._broadcast(message, exclude_id=exclude_id)

    def _broadcast(self, message: OutboundMessage, exclude_id: str | None) -> int:
        data = serialize_message(message)
        reached = 0
        skipped = 0

        def deliver(record: "ConnectionRecord") -> None:
            nonlocal reached, skipped
            if record.client_id == exclude_id:
                return
            if record.is_writable and record.outbound.send_nowait(data):
                reached += 1
            else:
                skipped += 1

        self._registry.for_each(deliver)

        if self._metrics is not None:
            self._metrics.record_broadcast(reached, skipped)
        if skipped:
            logger.debug(
                "Broadcast skipped recipients",
                reached=reached,
                skipped=skipped,
                excluded=exclude_id,
            )
        return reached

    def _record_targeted(self, delivered: bool) -> None:
        if self._metrics is not None:
            self._metrics.record_targeted_send(delivered)
