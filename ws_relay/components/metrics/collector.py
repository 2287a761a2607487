"""
Metrics Collector for the WebSocket Relay.

Centralizes metrics collection for observability.
Thread-safe counter operations for concurrent access.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any


@dataclass
class ConnectionMetrics:
    """Metrics for connection management."""
    accepted: int = 0
    closed: int = 0
    rejected_limit: int = 0
    rejected_shutdown: int = 0
    timeouts: int = 0


@dataclass
class MessageMetrics:
    """Metrics for inbound frames."""
    received: int = 0
    parse_errors: int = 0
    handler_errors: int = 0
    oversized: int = 0


@dataclass
class BroadcastMetrics:
    """Metrics for outbound routing."""
    total: int = 0
    recipients_reached: int = 0
    recipients_skipped: int = 0
    targeted_sent: int = 0
    targeted_dropped: int = 0


class MetricsCollector:
    """
    Thread-safe metrics collector for the relay.

    Every increment is a plain synchronous call: counters are bumped from
    handler callbacks and routing helpers, which must never await.

    Usage:
        metrics = MetricsCollector()
        metrics.increment_connections_accepted()
        stats = metrics.get_snapshot()
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connection = ConnectionMetrics()
        self._message = MessageMetrics()
        self._broadcast = BroadcastMetrics()

    # ==========================================================================
    # Connection Metrics
    # ==========================================================================

    def increment_connections_accepted(self) -> None:
        with self._lock:
            self._connection.accepted += 1

    def increment_connections_closed(self) -> None:
        with self._lock:
            self._connection.closed += 1

    def increment_connection_rejected_limit(self) -> None:
        """Increment count of connections rejected due to the connection limit."""
        with self._lock:
            self._connection.rejected_limit += 1

    def increment_connection_rejected_shutdown(self) -> None:
        """Increment count of connections rejected while shutting down."""
        with self._lock:
            self._connection.rejected_shutdown += 1

    def increment_connection_timeouts(self) -> None:
        """Increment count of handshakes that did not complete in time."""
        with self._lock:
            self._connection.timeouts += 1

    # ==========================================================================
    # Message Metrics
    # ==========================================================================

    def increment_messages_received(self) -> None:
        with self._lock:
            self._message.received += 1

    def increment_parse_errors(self) -> None:
        with self._lock:
            self._message.parse_errors += 1

    def increment_handler_errors(self) -> None:
        with self._lock:
            self._message.handler_errors += 1

    def increment_oversized(self) -> None:
        with self._lock:
            self._message.oversized += 1

    # ==========================================================================
    # Broadcast Metrics
    # ==========================================================================

    def record_broadcast(self, reached: int, skipped: int) -> None:
        """Record one fan-out and how many recipients it reached or skipped."""
        with self._lock:
            self._broadcast.total += 1
            self._broadcast.recipients_reached += reached
            self._broadcast.recipients_skipped += skipped

    def record_targeted_send(self, delivered: bool) -> None:
        with self._lock:
            if delivered:
                self._broadcast.targeted_sent += 1
            else:
                self._broadcast.targeted_dropped += 1

    # ==========================================================================
    # Snapshot
    # ==========================================================================

    def get_snapshot(self) -> dict[str, Any]:
        """
        Get a snapshot of all metrics.

        Metric names follow {category}_{metric}, category plural.
        Returns a copy to prevent modification of internal state.
        """
        with self._lock:
            return {
                # Connection metrics
                "connections_accepted": self._connection.accepted,
                "connections_closed": self._connection.closed,
                "connections_rejected_limit": self._connection.rejected_limit,
                "connections_rejected_shutdown": self._connection.rejected_shutdown,
                "connections_timeouts": self._connection.timeouts,
                # Message metrics
                "messages_received": self._message.received,
                "messages_parse_errors": self._message.parse_errors,
                "messages_handler_errors": self._message.handler_errors,
                "messages_oversized": self._message.oversized,
                # Broadcast metrics
                "broadcasts_total": self._broadcast.total,
                "broadcasts_recipients_reached": self._broadcast.recipients_reached,
                "broadcasts_recipients_skipped": self._broadcast.recipients_skipped,
                "sends_delivered": self._broadcast.targeted_sent,
                "sends_dropped": self._broadcast.targeted_dropped,
            }

    def reset(self) -> dict[str, Any]:
        """
        Reset all metrics and return the previous values.

        Useful for periodic metric collection systems.
        """
        snapshot = self.get_snapshot()
        with self._lock:
            self._connection = ConnectionMetrics()
            self._message = MessageMetrics()
            self._broadcast = BroadcastMetrics()
        return snapshot
