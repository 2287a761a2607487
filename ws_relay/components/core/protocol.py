"""
Wire envelope and handler contract.

Every frame in either direction is a JSON object with a required string
``type`` and an optional ``payload``:

    {"type": "sendMessage", "payload": {"text": "hi"}}

The relay only parses and serializes envelopes. What a given ``type`` means
is up to the RelayHandler plugged into the server.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, TypeVar, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ws_relay.components.core.constants import MSG_TYPE_ERROR
from ws_relay.components.core.errors import MessageParseError

if TYPE_CHECKING:
    from ws_relay.components.broadcast.helpers import RoutingHelpers

__all__ = [
    "Envelope",
    "OutboundMessage",
    "parse_envelope",
    "serialize_message",
    "error_message",
    "MessageContext",
    "RelayHandler",
]


class Envelope(BaseModel):
    """A message envelope. Unknown top-level keys are kept."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(..., min_length=1)
    payload: Any = None


OutboundMessage = Envelope | Mapping[str, Any]


def parse_envelope(raw: str | bytes) -> Envelope:
    """
    Parse a raw frame into an Envelope.

    Binary frames must be UTF-8 encoded JSON.

    Raises:
        MessageParseError: If the frame is not a JSON object with a string type.
    """
    try:
        return Envelope.model_validate_json(raw)
    except ValidationError as e:
        raise MessageParseError(f"Invalid envelope: {e.error_count()} error(s)", raw) from e
    except UnicodeDecodeError as e:
        raise MessageParseError("Frame is not valid UTF-8", raw) from e


def serialize_message(message: OutboundMessage) -> str:
    """Serialize an outbound message to its wire form."""
    if isinstance(message, BaseModel):
        return message.model_dump_json(exclude_none=False)
    return json.dumps(message, separators=(",", ":"), default=str)


def error_message(text: str) -> dict[str, Any]:
    """Build the error envelope sent back to a misbehaving sender."""
    return {"type": MSG_TYPE_ERROR, "payload": {"message": text}}


@dataclass(frozen=True, slots=True)
class MessageContext:
    """Everything on_message needs about one inbound frame."""

    client_id: str
    message: Envelope
    helpers: "RoutingHelpers"


StateT = TypeVar("StateT")


class RelayHandler(Protocol[StateT]):
    """
    Application logic plugged into a RelayServer.

    Any object with these four methods works; there is no base class to
    inherit. All callbacks run synchronously on the event loop, one at a
    time, so they may mutate the state without locking. Sends issued through
    ``helpers`` are queued and never block the callback.
    """

    def create_initial_state(self) -> StateT:
        """Build the application state. Called once per server."""
        ...

    def on_connect(self, state: StateT, client_id: str, helpers: "RoutingHelpers") -> None:
        ...

    def on_message(self, state: StateT, context: MessageContext) -> None:
        ...

    def on_disconnect(self, state: StateT, client_id: str, helpers: "RoutingHelpers") -> None:
        ...
