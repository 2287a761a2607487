"""
WebSocket endpoint components.

The per-connection endpoint and its mixins.
"""

from ws_relay.components.endpoints.base import ConnectionEndpoint
from ws_relay.components.endpoints.mixins import (
    MessageValidationMixin,
    ConnectionLifecycleMixin,
)

__all__ = [
    "ConnectionEndpoint",
    "MessageValidationMixin",
    "ConnectionLifecycleMixin",
]
