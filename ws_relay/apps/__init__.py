"""
Applications that plug into the relay via the RelayHandler contract.
"""

from ws_relay.apps.chat import ChatHandler, ChatState

__all__ = ["ChatHandler", "ChatState"]
