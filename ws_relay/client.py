"""
Relay client.

Async WebSocket client for the relay with automatic reconnect.

- Reconnects with exponential backoff and jitter until max_attempts
  consecutive failures (unlimited by default). A successful open resets
  the attempt counter.
- Messages sent while disconnected are queued and flushed, in order, on the
  next open.
- disconnect() closes the connection and suppresses reconnecting.

Usage:
    client = RelayClient("ws://localhost:3000/")
    client.on("message", lambda msg: print(msg["type"]))
    client.connect()
    await client.send({"type": "setUsername", "payload": {"username": "ada"}})
    ...
    await client.disconnect()
"""

from __future__ import annotations

import asyncio
import json
from collections import deque
from typing import Any, AsyncContextManager, Callable

import websockets
from websockets.exceptions import ConnectionClosed

from shared.config.logging import get_logger
from ws_relay.components.resilience.retry import (
    ReconnectBackoff,
    RetryConfig,
    create_client_retry_config,
)

logger = get_logger(__name__)

Connector = Callable[[str], AsyncContextManager[Any]]

_EVENTS = ("open", "close", "error", "message")


class RelayClient:
    """WebSocket client with reconnect and an outbound queue."""

    def __init__(
        self,
        url: str,
        retry_config: RetryConfig | None = None,
        *,
        on_open: Callable[[], None] | None = None,
        on_close: Callable[[], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
        on_message: Callable[[dict[str, Any]], None] | None = None,
        connector: Connector | None = None,
    ) -> None:
        self.url = url
        self.retry_config = retry_config or create_client_retry_config()
        self._backoff = ReconnectBackoff(self.retry_config)
        self._callbacks: dict[str, Callable[..., None] | None] = {
            "open": on_open,
            "close": on_close,
            "error": on_error,
            "message": on_message,
        }
        self._connector: Connector = connector or websockets.connect

        self._ws: Any = None
        self._queue: deque[dict[str, Any]] = deque()
        self._manual_close = False
        self._stop = asyncio.Event()
        self._task: asyncio.Task | None = None

    # =========================================================================
    # Public API
    # =========================================================================

    def on(self, event: str, callback: Callable[..., None]) -> None:
        """Register a callback for "open", "close", "error" or "message"."""
        if event not in _EVENTS:
            raise ValueError(f"Unknown event: {event}")
        self._callbacks[event] = callback

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    @property
    def queued_count(self) -> int:
        return len(self._queue)

    @property
    def reconnect_attempts(self) -> int:
        return self._backoff.attempts

    def connect(self) -> asyncio.Task:
        """Start the connection loop in the background."""
        if self._task is not None and not self._task.done():
            logger.debug("Connection loop already running", url=self.url)
            return self._task
        self._manual_close = False
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self.run(), name="relay-client")
        return self._task

    async def send(self, message: dict[str, Any]) -> bool:
        """
        Send a message, or queue it while disconnected.

        Returns:
            True if sent now, False if queued or the send failed.
        """
        if self._ws is None:
            logger.warning("Not connected, queuing message", type=message.get("type"))
            self._queue.append(message)
            return False
        return await self._send_now(message)

    async def disconnect(self) -> None:
        """Close the connection and stop reconnecting."""
        self._manual_close = True
        self._stop.set()
        if self._ws is not None:
            try:
                await self._ws.close()
            except Exception as e:
                logger.debug("Error closing websocket", error=str(e))
        if self._task is not None and self._task is not asyncio.current_task():
            await asyncio.gather(self._task, return_exceptions=True)

    # =========================================================================
    # Connection loop
    # =========================================================================

    async def run(self) -> None:
        """Connect, read until closed, and reconnect with backoff."""
        while not self._manual_close:
            opened = False
            try:
                logger.info("Connecting", url=self.url, attempt=self._backoff.attempts)
                async with self._connector(self.url) as ws:
                    self._ws = ws
                    opened = True
                    self._backoff.reset()
                    logger.info("Connected", url=self.url)
                    await self._flush_queue()
                    self._emit("open")
                    async for raw in ws:
                        self._handle_raw(raw)
            except ConnectionClosed as e:
                logger.info("Connection closed", code=e.rcvd.code if e.rcvd else None)
            except Exception as e:
                logger.warning("WebSocket error", url=self.url, error=str(e))
                self._emit("error", e)
            finally:
                self._ws = None
                if opened:
                    self._emit("close")

            if self._manual_close:
                break
            if not self._backoff.can_retry():
                logger.error("Max reconnect attempts reached", attempts=self._backoff.attempts)
                break

            delay = self._backoff.next_delay()
            logger.info("Reconnecting", delay=round(delay, 2), attempt=self._backoff.attempts)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=delay)
            except asyncio.TimeoutError:
                continue

    async def _flush_queue(self) -> None:
        while self._queue and self._ws is not None:
            await self._send_now(self._queue.popleft())

    async def _send_now(self, message: dict[str, Any]) -> bool:
        try:
            await self._ws.send(json.dumps(message))
            return True
        except Exception as e:
            logger.error("Failed to send message", error=str(e))
            return False

    def _handle_raw(self, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error("Failed to parse message", error=str(e))
            return
        if not isinstance(message, dict):
            logger.error("Ignoring non-object message", kind=type(message).__name__)
            return
        self._emit("message", message)

    def _emit(self, event: str, *args: Any) -> None:
        callback = self._callbacks.get(event)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Client callback failed", event=event)
