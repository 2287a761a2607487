"""
WebSocket Connection Endpoint.

Serves a single WebSocket connection for a RelayServer: admission, accept,
registration, the receive loop and cleanup. One instance per connection.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from shared.config.logging import get_logger
from shared.infrastructure.correlation import client_id_var
from ws_relay.components.core.context import WebSocketContext
from ws_relay.components.core.errors import ConnectionRejectedError
from ws_relay.components.endpoints.mixins import (
    ConnectionLifecycleMixin,
    MessageValidationMixin,
)

if TYPE_CHECKING:
    from ws_relay.components.connection.registry import ConnectionRecord
    from ws_relay.server import RelayServer

logger = get_logger(__name__)


class ConnectionEndpoint(MessageValidationMixin, ConnectionLifecycleMixin):
    """
    Runs the lifecycle of one connection.

    Uses mixins for single concerns:
    - MessageValidationMixin: Frame size checks
    - ConnectionLifecycleMixin: Lifecycle logging

    Lifecycle:
    1. Admission and accept (rejected connections are closed with a code)
    2. Register with the server (handler.on_connect)
    3. Receive loop, one frame at a time, in arrival order
    4. Cleanup on close or transport error (handler.on_disconnect once)

    Usage:
        endpoint = ConnectionEndpoint(websocket, server, "/")
        await endpoint.run()
    """

    def __init__(
        self,
        websocket: WebSocket,
        server: "RelayServer",
        endpoint_name: str,
    ):
        """
        Initialize the endpoint handler.

        Args:
            websocket: The WebSocket connection.
            server: RelayServer owning the registry and handler.
            endpoint_name: Path for logging (e.g., "/").
        """
        self.websocket = websocket
        self.server = server
        self.endpoint_name = endpoint_name
        self.max_message_size = server.max_message_size
        self.metrics = server.metrics

        self.context: WebSocketContext | None = None
        self.record: "ConnectionRecord | None" = None

    async def run(self) -> None:
        """
        Main entry point - serve the connection until it closes.
        """
        self.context = WebSocketContext.from_websocket(self.websocket, self.endpoint_name)

        # Step 1: Admission and accept
        try:
            await self.server.accept(self.websocket)
            # Step 2: Register
            self.record = self.server.connect(self.websocket, origin=self.context.origin)
        except ConnectionRejectedError as e:
            self.log_connect_rejected(e.reason, e.close_code)
            await self.reject(e)
            return

        client_id = self.record.client_id
        self.context.client_id = client_id
        token = client_id_var.set(client_id)
        self.log_connect(total=self.server.get_client_count())

        # Step 3: Receive loop
        reason = "client_disconnect"
        try:
            reason = await self._message_loop()
        except WebSocketDisconnect:
            reason = "client_disconnect"
        except Exception as e:
            # Transport-level failure, handled like a close
            reason = "transport_error"
            self.server.handle_transport_error(client_id, e)
        finally:
            # Step 4: Cleanup. Synchronous so it also completes when this
            # task is being cancelled.
            self.server.handle_transport_close(client_id)
            if self.server.is_closing and reason == "client_disconnect":
                reason = "server_shutdown"
            self.log_disconnect(reason)
            client_id_var.reset(token)

    async def reject(self, error: ConnectionRejectedError) -> None:
        """Close a rejected transport, accepting first so the peer sees the code."""
        try:
            if self.websocket.application_state == WebSocketState.CONNECTING:
                await self.websocket.accept()
            if self.websocket.application_state == WebSocketState.CONNECTED:
                await self.websocket.close(code=error.close_code, reason=error.reason)
        except Exception as e:
            logger.debug("Error closing rejected connection", error=str(e))

    async def _message_loop(self) -> str:
        """
        Receive frames until the peer goes away.

        Text frames and UTF-8 binary frames are both accepted. Frames that
        arrive after the server has already cleaned the connection up
        (shutdown in progress) are ignored.

        Returns:
            The reason the loop ended.
        """
        while True:
            message = await self.websocket.receive()
            if message["type"] == "websocket.disconnect":
                return "client_disconnect"

            data = message.get("text")
            if data is None:
                data = message.get("bytes")
            if data is None:
                continue

            if not await self.validate_message_size(data):
                return "message_too_big"

            self.server.handle_frame(self.record, data)
