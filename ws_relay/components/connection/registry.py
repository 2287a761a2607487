"""
Connection Registry - single source of truth for who is connected.

Maps client_id -> ConnectionRecord. A record exists exactly while its
transport is open or being closed by the relay; disconnect cleanup removes
it, and removal is idempotent because transport close and transport error
can both report the same connection.

Thread Safety:
- All mutations and snapshots take one RLock. On the asyncio host every
  call already runs on the event loop, so the lock is never contended
  there; it keeps iteration consistent on a multi-threaded host.
- for_each() iterates a snapshot, so a visitor may unregister records
  (including the one it is visiting) without breaking iteration.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterator, TYPE_CHECKING

from starlette.websockets import WebSocketState

from shared.config.logging import get_logger

if TYPE_CHECKING:
    from fastapi import WebSocket
    from ws_relay.components.connection.outbound import OutboundChannel

logger = get_logger(__name__)


def is_ws_connected(ws: "WebSocket") -> bool:
    """
    Check if WebSocket is in connected state before sending.

    Starlette WebSockets have limited state visibility:
    - CONNECTING: Initial state (not observable here)
    - CONNECTED: Active connection
    - DISCONNECTED: Closed connection

    Transitional states are not exposed, so connections may appear
    connected briefly after disconnect initiated.
    """
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


@dataclass
class ConnectionRecord:
    """One open connection: its identifier, transport and outbound channel."""

    client_id: str
    websocket: "WebSocket"
    outbound: "OutboundChannel"
    connected_at: float = field(default_factory=time.time)
    origin: str | None = None

    @property
    def is_writable(self) -> bool:
        """True if a frame queued now has a chance of reaching the peer."""
        return self.outbound.is_open and is_ws_connected(self.websocket)


class ConnectionRegistry:
    """
    Registry of live connections keyed by client_id.

    Iteration order is unspecified.
    """

    def __init__(self) -> None:
        self._records: dict[str, ConnectionRecord] = {}
        self._lock = threading.RLock()
        self._total_registered = 0
        self._total_unregistered = 0

    # =========================================================================
    # Mutation
    # =========================================================================

    def register(self, record: ConnectionRecord) -> None:
        """
        Insert a new record.

        Raises:
            ValueError: If a record with the same client_id is already present.
        """
        with self._lock:
            if record.client_id in self._records:
                raise ValueError(f"Connection {record.client_id} is already registered")
            self._records[record.client_id] = record
            self._total_registered += 1

    def unregister(self, client_id: str) -> ConnectionRecord | None:
        """
        Remove a record if present.

        Returns:
            The removed record, or None if client_id was not registered.
        """
        with self._lock:
            record = self._records.pop(client_id, None)
            if record is not None:
                self._total_unregistered += 1
            return record

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, client_id: str) -> ConnectionRecord | None:
        with self._lock:
            return self._records.get(client_id)

    def count(self) -> int:
        """Current number of registered connections."""
        with self._lock:
            return len(self._records)

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, client_id: object) -> bool:
        with self._lock:
            return client_id in self._records

    def __iter__(self) -> Iterator[ConnectionRecord]:
        return iter(self.snapshot())

    def snapshot(self) -> list[ConnectionRecord]:
        """Copy of the current records."""
        with self._lock:
            return list(self._records.values())

    def client_ids(self) -> list[str]:
        with self._lock:
            return list(self._records)

    def for_each(self, visitor: Callable[[ConnectionRecord], object]) -> int:
        """
        Call visitor for every record registered at call time.

        A visitor that raises for one record is logged and iteration
        continues with the next record.

        Returns:
            Number of records visited without error.
        """
        visited = 0
        for record in self.snapshot():
            try:
                visitor(record)
                visited += 1
            except Exception as e:
                logger.warning(
                    "Registry visitor failed",
                    client_id=record.client_id,
                    error=str(e),
                )
        return visited

    def get_stats(self) -> dict[str, int]:
        """Registry statistics for monitoring."""
        with self._lock:
            return {
                "active_connections": len(self._records),
                "total_registered": self._total_registered,
                "total_unregistered": self._total_unregistered,
            }
