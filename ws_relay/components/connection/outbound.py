"""
Outbound channel: per-connection single-writer sending.

Every frame for one WebSocket is written by exactly one writer task that
drains a bounded queue. Producers (routing helpers called from handler
callbacks) only ever enqueue, so a slow or stalled peer delays nobody but
itself. When the queue is full the frame is dropped: delivery is best-effort.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from shared.config.logging import get_logger
from ws_relay.components.core.constants import WSConstants

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = get_logger(__name__)


class OutboundChannel:
    """Per-connection outbound channel with a single writer task."""

    def __init__(
        self,
        websocket: "WebSocket",
        *,
        maxsize: int = WSConstants.OUTBOUND_QUEUE_SIZE,
        name: str | None = None,
    ) -> None:
        self.websocket = websocket
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self.name = name or "outbound"
        self._writer_task: asyncio.Task | None = None
        self._closed = False
        self._failed = False
        self._sent_count = 0
        self._dropped_count = 0

    @property
    def is_open(self) -> bool:
        """True while frames can still be queued for this connection."""
        return not self._closed and not self._failed

    @property
    def sent_count(self) -> int:
        return self._sent_count

    @property
    def dropped_count(self) -> int:
        return self._dropped_count

    def start(self) -> None:
        """Spawn the writer task. Must be called on the running event loop."""
        if self._writer_task is None or self._writer_task.done():
            self._writer_task = asyncio.create_task(self._writer(), name=f"{self.name}-writer")

    def send_nowait(self, data: str) -> bool:
        """
        Queue a serialized frame without waiting.

        Returns:
            True if queued, False if the channel is closed, failed or full.
        """
        if not self.is_open:
            return False
        try:
            self.queue.put_nowait(data)
            return True
        except asyncio.QueueFull:
            self._dropped_count += 1
            # Log the first drop and then every Nth to avoid log spam
            if self._dropped_count % WSConstants.DROP_LOG_INTERVAL == 1:
                logger.warning(
                    "Outbound queue full, dropping frame",
                    channel=self.name,
                    queue_size=self.queue.maxsize,
                    dropped_total=self._dropped_count,
                )
            return False

    def close(self) -> None:
        """
        Stop the channel.

        Synchronous so it can run from disconnect cleanup even when the
        surrounding task is being cancelled. Pending frames are discarded.
        """
        if self._closed:
            return
        self._closed = True
        if self._writer_task is not None and not self._writer_task.done():
            self._writer_task.cancel()
        while not self.queue.empty():
            self.queue.get_nowait()
            self.queue.task_done()

    async def _writer(self) -> None:
        """Single writer that sends all frames on this connection."""
        try:
            while not self._closed:
                data = await self.queue.get()
                try:
                    await self.websocket.send_text(data)
                    self._sent_count += 1
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    # Peer is gone. Stop writing; the receive loop owns cleanup.
                    self._failed = True
                    logger.debug("Outbound send failed", channel=self.name, error=str(e))
                    return
                finally:
                    self.queue.task_done()
        except asyncio.CancelledError:
            # Normal shutdown path
            pass
