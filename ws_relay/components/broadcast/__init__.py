"""
Broadcasting components.

Best-effort fan-out built on the connection registry.
"""

from ws_relay.components.broadcast.helpers import RoutingHelpers

__all__ = ["RoutingHelpers"]
