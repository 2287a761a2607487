"""
Relay Server.

Owns the connection registry, the routing helpers and the application state
of one RelayHandler, and drives the handler from transport events:

    accept  -> register -> handler.on_connect
    frame   -> parse    -> handler.on_message   (or an error frame to the sender)
    close   -> unregister -> handler.on_disconnect   (at most once per connection)

Every registry mutation and handler callback runs synchronously on the event
loop. Nothing awaits between unregistering a connection and calling
on_disconnect, so callbacks never interleave and never observe a half-removed
connection.

Usage:
    server = RelayServer(ChatHandler(), max_connections=1000)
    server.attach(app, "/")
    ...
    server.close()
    await server.wait_closed()
"""

from __future__ import annotations

import asyncio
from typing import Any, Generic, TypeVar, TYPE_CHECKING

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from shared.config.logging import get_logger
from ws_relay.components.broadcast.helpers import RoutingHelpers
from ws_relay.components.connection.outbound import OutboundChannel
from ws_relay.components.connection.registry import ConnectionRecord, ConnectionRegistry
from ws_relay.components.core.constants import (
    ERROR_HANDLER_FAILED,
    ERROR_INVALID_FORMAT,
    WSCloseCode,
    WSConstants,
)
from ws_relay.components.core.context import sanitize_log_data
from ws_relay.components.core.errors import ConnectionRejectedError, MessageParseError
from ws_relay.components.core.identity import generate_client_id
from ws_relay.components.core.protocol import (
    MessageContext,
    RelayHandler,
    error_message,
    parse_envelope,
)
from ws_relay.components.endpoints.base import ConnectionEndpoint
from ws_relay.components.metrics.collector import MetricsCollector

if TYPE_CHECKING:
    from starlette.applications import Starlette

logger = get_logger(__name__)

StateT = TypeVar("StateT")


class RelayServer(Generic[StateT]):
    """
    Dispatcher between WebSocket transports and a RelayHandler.

    The handler's state is created once, here, before any connection is
    accepted, and lives as long as the server.
    """

    def __init__(
        self,
        handler: RelayHandler[StateT],
        *,
        max_connections: int = WSConstants.MAX_TOTAL_CONNECTIONS,
        max_message_size: int = WSConstants.MAX_MESSAGE_SIZE,
        outbound_queue_size: int = WSConstants.OUTBOUND_QUEUE_SIZE,
        accept_timeout: float = WSConstants.WS_ACCEPT_TIMEOUT,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self.handler = handler
        self.max_connections = max_connections
        self.max_message_size = max_message_size
        self.outbound_queue_size = outbound_queue_size
        self.accept_timeout = accept_timeout

        self.registry = ConnectionRegistry()
        self.metrics = metrics or MetricsCollector()
        self.helpers = RoutingHelpers(self.registry, self.metrics)
        self.state: StateT = handler.create_initial_state()

        self._closing = False
        self._pending_accepts = 0
        self._close_tasks: list[asyncio.Task] = []
        self._unclosed: list[WebSocket] = []
        self._paths: list[str] = []

    # =========================================================================
    # Boundary
    # =========================================================================

    def attach(self, app: "Starlette", path: str = "/") -> None:
        """Serve the relay on a WebSocket route of an existing application."""
        app.router.add_websocket_route(path, self.handle_websocket, name=f"relay:{path}")
        self._paths.append(path)
        logger.info("Relay attached", path=path, handler=type(self.handler).__name__)

    async def handle_websocket(self, websocket: WebSocket) -> None:
        """ASGI WebSocket entry point: serve one connection until it closes."""
        path = websocket.scope.get("path", "/")
        await ConnectionEndpoint(websocket, self, path).run()

    def get_client_count(self) -> int:
        """Number of registered connections."""
        return self.registry.count()

    @property
    def client_count(self) -> int:
        return self.registry.count()

    @property
    def is_closing(self) -> bool:
        return self._closing

    def get_stats(self) -> dict[str, Any]:
        """Server statistics for the detailed health endpoint."""
        return {
            "clients": self.registry.count(),
            "max_connections": self.max_connections,
            "pending_accepts": self._pending_accepts,
            "closing": self._closing,
            "paths": list(self._paths),
            "registry": self.registry.get_stats(),
            "metrics": self.metrics.get_snapshot(),
        }

    # =========================================================================
    # Accept
    # =========================================================================

    def check_admission(self) -> None:
        """
        Raise if a new connection may not be admitted right now.

        Raises:
            ConnectionRejectedError: Shutting down (GOING_AWAY) or at capacity
                (SERVER_OVERLOADED).
        """
        if self._closing:
            self.metrics.increment_connection_rejected_shutdown()
            raise ConnectionRejectedError("Server is shutting down", WSCloseCode.GOING_AWAY)

        if self.registry.count() + self._pending_accepts >= self.max_connections:
            self.metrics.increment_connection_rejected_limit()
            raise ConnectionRejectedError(
                f"Server at capacity ({self.max_connections} connections)",
                WSCloseCode.SERVER_OVERLOADED,
            )

    async def accept(self, websocket: WebSocket) -> None:
        """
        Admit and accept a transport.

        Raises:
            ConnectionRejectedError: If admission fails or the handshake
                does not complete within accept_timeout.
        """
        self.check_admission()

        self._pending_accepts += 1
        try:
            await asyncio.wait_for(websocket.accept(), timeout=self.accept_timeout)
        except asyncio.TimeoutError:
            self.metrics.increment_connection_timeouts()
            raise ConnectionRejectedError("WebSocket accept timed out", WSCloseCode.NORMAL)
        except Exception as e:
            raise ConnectionRejectedError(f"WebSocket accept failed: {e}", WSCloseCode.NORMAL)
        finally:
            self._pending_accepts -= 1

    def connect(self, websocket: WebSocket, origin: str | None = None) -> ConnectionRecord:
        """
        Register an accepted transport and run handler.on_connect.

        Raises:
            ConnectionRejectedError: If shutdown began while the handshake
                was in flight.
        """
        if self._closing:
            self.metrics.increment_connection_rejected_shutdown()
            raise ConnectionRejectedError("Server is shutting down", WSCloseCode.GOING_AWAY)

        client_id = generate_client_id()
        while client_id in self.registry:
            client_id = generate_client_id()

        outbound = OutboundChannel(websocket, maxsize=self.outbound_queue_size, name=client_id)
        record = ConnectionRecord(
            client_id=client_id,
            websocket=websocket,
            outbound=outbound,
            origin=origin,
        )
        self.registry.register(record)
        outbound.start()
        self.metrics.increment_connections_accepted()

        try:
            self.handler.on_connect(self.state, client_id, self.helpers)
        except Exception:
            self.metrics.increment_handler_errors()
            logger.exception("Handler on_connect failed", client_id=client_id)

        return record

    # =========================================================================
    # Inbound frames
    # =========================================================================

    def handle_frame(self, record: ConnectionRecord, raw: str | bytes) -> bool:
        """
        Parse one inbound frame and dispatch it to handler.on_message.

        A frame that fails to parse is answered with an error frame to its
        sender only; the handler is not called and the connection stays open.

        Returns:
            False if the connection is no longer registered (frame ignored).
        """
        if self.registry.get(record.client_id) is not record:
            return False

        self.metrics.increment_messages_received()

        try:
            message = parse_envelope(raw)
        except MessageParseError as e:
            self.metrics.increment_parse_errors()
            logger.warning(
                "Invalid message format",
                client_id=record.client_id,
                error=str(e),
                data=sanitize_log_data(raw),
            )
            self.helpers.send_to(record.client_id, error_message(ERROR_INVALID_FORMAT))
            return True

        context = MessageContext(client_id=record.client_id, message=message, helpers=self.helpers)
        try:
            self.handler.on_message(self.state, context)
        except Exception:
            self.metrics.increment_handler_errors()
            logger.exception(
                "Handler on_message failed",
                client_id=record.client_id,
                message_type=message.type,
            )
            self.helpers.send_to(record.client_id, error_message(ERROR_HANDLER_FAILED))
        return True

    # =========================================================================
    # Disconnect
    # =========================================================================

    def disconnect(self, client_id: str, reason: str = "client_disconnect") -> bool:
        """
        Unregister a connection and run handler.on_disconnect.

        Idempotent: only the first call for a client_id does anything.

        Returns:
            True if this call performed the cleanup.
        """
        record = self.registry.unregister(client_id)
        if record is None:
            return False

        record.outbound.close()
        self.metrics.increment_connections_closed()

        try:
            self.handler.on_disconnect(self.state, client_id, self.helpers)
        except Exception:
            self.metrics.increment_handler_errors()
            logger.exception("Handler on_disconnect failed", client_id=client_id)

        logger.debug(
            "Connection cleaned up",
            client_id=client_id,
            reason=reason,
            remaining=self.registry.count(),
        )
        return True

    def handle_transport_close(self, client_id: str) -> bool:
        """Transport reported a close."""
        return self.disconnect(client_id, reason="transport_close")

    def handle_transport_error(self, client_id: str, error: BaseException | None = None) -> bool:
        """Transport reported an error; treated exactly like a close."""
        if error is not None:
            logger.warning("Transport error", client_id=client_id, error=str(error))
        return self.disconnect(client_id, reason="transport_error")

    # =========================================================================
    # Shutdown
    # =========================================================================

    def close(self) -> None:
        """
        Stop accepting connections and close every open one.

        Synchronous: on return every connection has been unregistered and
        its on_disconnect has run. Close frames are sent by background
        tasks; await wait_closed() to wait for them.
        """
        if self._closing:
            return
        self._closing = True

        records = self.registry.snapshot()
        logger.info("Relay shutting down", connections=len(records))

        # Close every outbound channel first so on_disconnect broadcasts
        # issued below reach no one that is also going away.
        for record in records:
            record.outbound.close()

        for record in records:
            self.disconnect(record.client_id, reason="server_shutdown")

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        for record in records:
            if loop is None:
                self._unclosed.append(record.websocket)
            else:
                self._close_tasks.append(
                    loop.create_task(
                        self._close_transport(record.websocket),
                        name=f"{record.client_id}-close",
                    )
                )

    async def wait_closed(self) -> None:
        """Wait until every close frame scheduled by close() has been sent."""
        while self._unclosed:
            await self._close_transport(self._unclosed.pop())
        if self._close_tasks:
            tasks, self._close_tasks = self._close_tasks, []
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _close_transport(self, websocket: WebSocket) -> None:
        if websocket.application_state != WebSocketState.CONNECTED:
            return
        try:
            await asyncio.wait_for(
                websocket.close(code=WSCloseCode.GOING_AWAY, reason="Server shutting down"),
                timeout=WSConstants.WS_CLOSE_TIMEOUT,
            )
        except Exception as e:
            logger.debug("Error closing transport during shutdown", error=str(e))
