"""
Demo chat room.

Clients pick a username and post messages that are broadcast to everyone.
Joins and leaves are announced.

Client -> server:
    {"type": "setUsername", "payload": {"username": "ada"}}
    {"type": "sendMessage", "payload": {"text": "hello"}}

Server -> client:
    welcome, userJoined, userLeft, chatMessage, error
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Final, TYPE_CHECKING

from pydantic import BaseModel, ValidationError

from shared.config.logging import get_logger
from ws_relay.components.core.context import sanitize_log_data
from ws_relay.components.core.protocol import MessageContext, error_message

if TYPE_CHECKING:
    from ws_relay.components.broadcast.helpers import RoutingHelpers

logger = get_logger(__name__)

DEFAULT_USERNAME: Final[str] = "Anonymous"
MAX_MESSAGE_LENGTH: Final[int] = 500
MAX_HISTORY: Final[int] = 100

ERROR_EMPTY_MESSAGE: Final[str] = "Message cannot be empty"
ERROR_MESSAGE_TOO_LONG: Final[str] = f"Message too long (max {MAX_MESSAGE_LENGTH} characters)"
ERROR_UNKNOWN_TYPE: Final[str] = "Unknown message type"
ERROR_INVALID_PAYLOAD: Final[str] = "Invalid message payload"


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


# =============================================================================
# Payloads
# =============================================================================


class SetUsernamePayload(BaseModel):
    username: str


class SendMessagePayload(BaseModel):
    text: str


# =============================================================================
# State
# =============================================================================


@dataclass
class User:
    client_id: str
    username: str = DEFAULT_USERNAME
    connected_at: int = field(default_factory=_now_ms)


@dataclass
class ChatMessage:
    username: str
    text: str
    timestamp: int
    client_id: str

    def to_payload(self) -> dict[str, object]:
        return {
            "username": self.username,
            "text": self.text,
            "timestamp": self.timestamp,
            "clientId": self.client_id,
        }


@dataclass
class ChatState:
    users: dict[str, User] = field(default_factory=dict)
    message_history: list[ChatMessage] = field(default_factory=list)


# =============================================================================
# Handler
# =============================================================================


class ChatHandler:
    """RelayHandler implementation for the chat room."""

    def create_initial_state(self) -> ChatState:
        return ChatState()

    def on_connect(self, state: ChatState, client_id: str, helpers: "RoutingHelpers") -> None:
        state.users[client_id] = User(client_id=client_id)
        helpers.send_to(client_id, {"type": "welcome", "payload": {"clientId": client_id}})
        logger.info("User connected", client_id=client_id, total_users=len(state.users))

    def on_disconnect(self, state: ChatState, client_id: str, helpers: "RoutingHelpers") -> None:
        user = state.users.pop(client_id, None)
        if user is None:
            return
        helpers.broadcast_all({"type": "userLeft", "payload": {"username": user.username}})
        logger.info("User disconnected", client_id=client_id, username=user.username)

    def on_message(self, state: ChatState, context: MessageContext) -> None:
        user = state.users.get(context.client_id)
        if user is None:
            logger.warning("Message from unknown client", client_id=context.client_id)
            return

        message_type = context.message.type
        try:
            if message_type == "setUsername":
                payload = SetUsernamePayload.model_validate(context.message.payload)
                self._set_username(user, payload, context.helpers)
            elif message_type == "sendMessage":
                payload = SendMessagePayload.model_validate(context.message.payload)
                self._send_message(state, user, payload, context.helpers)
            else:
                logger.warning(
                    "Unknown message type",
                    client_id=context.client_id,
                    message_type=sanitize_log_data(message_type),
                )
                context.helpers.send_to(context.client_id, error_message(ERROR_UNKNOWN_TYPE))
        except ValidationError as e:
            logger.warning(
                "Invalid message payload",
                client_id=context.client_id,
                message_type=message_type,
                errors=e.error_count(),
            )
            context.helpers.send_to(context.client_id, error_message(ERROR_INVALID_PAYLOAD))

    def _set_username(
        self,
        user: User,
        payload: SetUsernamePayload,
        helpers: "RoutingHelpers",
    ) -> None:
        new_username = payload.username.strip() or DEFAULT_USERNAME
        old_username = user.username
        user.username = new_username

        logger.info(
            "Username changed",
            client_id=user.client_id,
            old=sanitize_log_data(old_username),
            new=sanitize_log_data(new_username),
        )

        # Announce only the first real name, not every rename
        if old_username == DEFAULT_USERNAME and new_username != DEFAULT_USERNAME:
            helpers.broadcast_all({"type": "userJoined", "payload": {"username": new_username}})

    def _send_message(
        self,
        state: ChatState,
        user: User,
        payload: SendMessagePayload,
        helpers: "RoutingHelpers",
    ) -> None:
        text = payload.text.strip()

        if not text:
            helpers.send_to(user.client_id, error_message(ERROR_EMPTY_MESSAGE))
            return
        if len(text) > MAX_MESSAGE_LENGTH:
            helpers.send_to(user.client_id, error_message(ERROR_MESSAGE_TOO_LONG))
            return

        chat_message = ChatMessage(
            username=user.username,
            text=text,
            timestamp=_now_ms(),
            client_id=user.client_id,
        )
        state.message_history.append(chat_message)
        if len(state.message_history) > MAX_HISTORY:
            del state.message_history[: len(state.message_history) - MAX_HISTORY]

        helpers.broadcast_all({"type": "chatMessage", "payload": chat_message.to_payload()})
