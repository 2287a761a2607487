"""
Connection management components.

Registry of live connections and their outbound channels.
"""

from ws_relay.components.connection.outbound import OutboundChannel
from ws_relay.components.connection.registry import (
    ConnectionRecord,
    ConnectionRegistry,
    is_ws_connected,
)

__all__ = [
    "OutboundChannel",
    "ConnectionRecord",
    "ConnectionRegistry",
    "is_ws_connected",
]
