"""
WebSocket Context for audit logging.

Connection metadata gathered once at accept time and reused by every
lifecycle log line, plus sanitizing of client-controlled data before it
reaches a log record.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, TYPE_CHECKING

from ws_relay.components.core.constants import WSConstants

if TYPE_CHECKING:
    from fastapi import WebSocket


# ASCII/C1 controls, zero-width marks, bidi embeddings and isolates, BOM
_UNSAFE_CHARS = re.compile(
    r"[\x00-\x1f\x7f-\x9f\u200b-\u200f\u202a-\u202e\u2066-\u2069\ufeff]"
)


def sanitize_log_data(
    data: str | bytes,
    max_length: int = WSConstants.MAX_LOG_DATA_LENGTH,
) -> str:
    """
    Make an inbound frame (or any client-supplied string) safe to log.

    Binary frames are decoded leniently. The text is cut to max_length
    before escaping, so a truncated escape sequence is impossible, and a
    trailing "..." marks the cut.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")

    truncated = len(data) > max_length
    text = _UNSAFE_CHARS.sub("", data[:max_length])
    text = text.replace("\\", "\\\\").replace('"', '\\"')

    return text + "..." if truncated else text


@dataclass
class WebSocketContext:
    """
    Metadata for one connection, used for audit logging.

    Usage:
        ctx = WebSocketContext.from_websocket(websocket, "/")
        ctx.client_id = record.client_id
        ctx.audit("CONNECT")
        # ... later
        ctx.audit("DISCONNECT", reason="client_disconnect")
    """

    endpoint: str
    origin: str | None = None
    remote: str | None = None
    client_id: str | None = None
    started_at: float = field(default_factory=time.monotonic)

    @classmethod
    def from_websocket(cls, websocket: "WebSocket", endpoint: str) -> "WebSocketContext":
        """Build the context before accept; client_id is set after registration."""
        client = websocket.client
        return cls(
            endpoint=endpoint,
            origin=websocket.headers.get("origin"),
            remote=f"{client.host}:{client.port}" if client else None,
        )

    @property
    def identifier(self) -> str:
        """The client_id once registered, the remote address before that."""
        return self.client_id or self.remote or "pending"

    def duration(self) -> float:
        """Seconds since the connection was first seen."""
        return round(time.monotonic() - self.started_at, 3)

    def to_audit_dict(self, event_type: str, **extra: Any) -> dict[str, Any]:
        """Audit fields, leaving out the ones not known yet."""
        result: dict[str, Any] = {
            "event_type": event_type,
            "endpoint": self.endpoint,
        }
        for key in ("origin", "remote", "client_id"):
            value = getattr(self, key)
            if value:
                result[key] = value
        result.update(extra)
        return result

    def audit(
        self,
        event_type: str,
        logger_func: Callable[..., None] | None = None,
        **extra: Any,
    ) -> None:
        """Emit an audit event (audit_ws_connection unless logger_func is given)."""
        if logger_func is None:
            from shared.config.logging import audit_ws_connection
            logger_func = audit_ws_connection

        logger_func(**self.to_audit_dict(event_type, **extra))
