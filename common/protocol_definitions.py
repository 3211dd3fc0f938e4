"""
Protocol definitions for the STChat room relay.

This module defines the message structures and data formats used in communication
between client and server components.

Every client frame is decoded into exactly one inbound event variant by
``parse_event``. A frame without a ``type`` field is a new chat message; any
other unknown ``type`` is rejected with ``ProtocolError``.
"""

import json
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List, Union

from common.constants import MessageTypes, ErrorCodes, ANONYMOUS_USER, MIN_USERNAME_LENGTH


USERNAME_PATTERN = re.compile(r'^[A-Za-z][A-Za-z0-9_]*$')


class ProtocolError(ValueError):
    """Raised when a client frame does not match any known event shape."""


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision, e.g. 2025-01-31T12:00:00.000Z."""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def _reject_constant(name: str):
    raise ProtocolError(f"Non-JSON constant {name} in frame")


def decode_frame(line: bytes) -> Any:
    """
    Decode one wire frame.

    NaN and +/-Infinity are refused so that anything stored can be sent back
    out as strict JSON.

    Raises:
        ProtocolError: on invalid UTF-8, invalid JSON or a non-JSON constant.
    """
    try:
        return json.loads(line.decode('utf-8'), parse_constant=_reject_constant)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolError(f"Undecodable frame: {e}") from e


def encode_frame(message: Dict[str, Any]) -> bytes:
    """Encode one strict-JSON wire frame, newline terminated."""
    return json.dumps(message, allow_nan=False).encode('utf-8') + b'\n'


def validate_username(name: str) -> bool:
    """Check the display name rule: leading letter, then letters/digits/underscore, min length 4."""
    if not isinstance(name, str) or len(name) < MIN_USERNAME_LENGTH:
        return False
    return USERNAME_PATTERN.match(name) is not None


@dataclass
class Message:
    """A stored chat message. ``text``, ``iv`` and ``reply_to`` are opaque to the server."""
    id: int
    user: str
    text: str
    iv: str
    reply_to: Optional[Dict[str, Any]]
    timestamp: str
    reactions: Dict[str, List[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user": self.user,
            "text": self.text,
            "iv": self.iv,
            "replyTo": self.reply_to,
            "timestamp": self.timestamp,
            "reactions": {emoji: list(users) for emoji, users in self.reactions.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Message':
        return cls(
            id=data['id'],
            user=data['user'],
            text=data['text'],
            iv=data['iv'],
            reply_to=data.get('replyTo'),
            timestamp=data['timestamp'],
            reactions={emoji: list(users) for emoji, users in (data.get('reactions') or {}).items()},
        )


# Inbound events

@dataclass
class JoinEvent:
    """Join request for a display name."""
    user: str


@dataclass
class TypingEvent:
    """Typing indicator toggle."""
    user: str
    is_typing: bool


@dataclass
class DeleteMessageEvent:
    """Delete request for one of the sender's own messages."""
    id: Union[int, float]
    user: str


@dataclass
class ReactEvent:
    """Emoji reaction toggle on a message."""
    msg_id: Union[int, float]
    emoji: str
    user: str


@dataclass
class NewMessageEvent:
    """New encrypted chat message (frames without a ``type`` field)."""
    user: str
    text: str
    iv: str
    reply_to: Optional[Dict[str, Any]] = None


InboundEvent = Union[JoinEvent, TypingEvent, DeleteMessageEvent, ReactEvent, NewMessageEvent]


def _require_str(data: Dict[str, Any], key: str, kind: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ProtocolError(f"'{kind}' frame requires string field '{key}'")
    return value


def _require_number(data: Dict[str, Any], key: str, kind: str) -> Union[int, float]:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProtocolError(f"'{kind}' frame requires numeric field '{key}'")
    return value


def parse_event(data: Any) -> InboundEvent:
    """
    Turn a decoded JSON frame into an inbound event.

    Raises:
        ProtocolError: if the frame is not an object, carries an unknown type,
            or is missing a required field.
    """
    if not isinstance(data, dict):
        raise ProtocolError("Frame must be a JSON object")

    if 'type' not in data:
        user = data.get('user') or ANONYMOUS_USER
        if not isinstance(user, str):
            raise ProtocolError("Message 'user' must be a string")
        reply_to = data.get('replyTo')
        if reply_to is not None and not isinstance(reply_to, dict):
            raise ProtocolError("Message 'replyTo' must be an object or null")
        return NewMessageEvent(
            user=user,
            text=_require_str(data, 'text', 'message'),
            iv=_require_str(data, 'iv', 'message'),
            reply_to=reply_to,
        )

    msg_type = data['type']

    if msg_type == MessageTypes.JOIN:
        return JoinEvent(user=_require_str(data, 'user', msg_type))

    if msg_type == MessageTypes.TYPING:
        is_typing = data.get('isTyping')
        if not isinstance(is_typing, bool):
            raise ProtocolError("'typing' frame requires boolean field 'isTyping'")
        return TypingEvent(user=_require_str(data, 'user', msg_type), is_typing=is_typing)

    if msg_type == MessageTypes.DELETE_MESSAGE:
        return DeleteMessageEvent(
            id=_require_number(data, 'id', msg_type),
            user=_require_str(data, 'user', msg_type),
        )

    if msg_type == MessageTypes.REACT:
        emoji = _require_str(data, 'emoji', msg_type)
        if not emoji:
            raise ProtocolError("'react' frame requires a non-empty 'emoji'")
        return ReactEvent(
            msg_id=_require_number(data, 'msgId', msg_type),
            emoji=emoji,
            user=_require_str(data, 'user', msg_type),
        )

    raise ProtocolError(f"Unknown message type {msg_type!r}")


# Client to Server

def create_join_message(user: str) -> Dict[str, Any]:
    """Create a join message."""
    return {
        "type": MessageTypes.JOIN,
        "user": user
    }


def create_typing_message(user: str, is_typing: bool) -> Dict[str, Any]:
    """Create a typing indicator message (also relayed verbatim by the server)."""
    return {
        "type": MessageTypes.TYPING,
        "user": user,
        "isTyping": is_typing
    }


def create_delete_message(msg_id: int, user: str) -> Dict[str, Any]:
    """Create a delete_message request."""
    return {
        "type": MessageTypes.DELETE_MESSAGE,
        "id": msg_id,
        "user": user
    }


def create_react_message(msg_id: int, emoji: str, user: str) -> Dict[str, Any]:
    """Create a react request."""
    return {
        "type": MessageTypes.REACT,
        "msgId": msg_id,
        "emoji": emoji,
        "user": user
    }


def create_chat_message(user: str, text: str, iv: str, reply_to: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Create a new chat message. Deliberately carries no ``type`` field."""
    return {
        "user": user,
        "text": text,
        "iv": iv,
        "replyTo": reply_to
    }


# Server to Client

def create_error_message(code: str, message: str) -> Dict[str, Any]:
    """Create an error message."""
    return {
        "type": MessageTypes.ERROR,
        "code": code,
        "message": message
    }


def create_username_taken_message(user: str) -> Dict[str, Any]:
    """Create the error sent when a display name is already connected."""
    return create_error_message(
        ErrorCodes.USERNAME_TAKEN,
        f"Username '{user}' is already in use. Please choose another."
    )


def create_history_message(messages: List[Message]) -> Dict[str, Any]:
    """Create the history snapshot sent to a newly joined participant."""
    return {
        "type": MessageTypes.HISTORY,
        "payload": [m.to_dict() for m in messages]
    }


def create_history_update_message(messages: List[Message]) -> Dict[str, Any]:
    """Create a full-log refresh after deletions."""
    return {
        "type": MessageTypes.HISTORY_UPDATE,
        "payload": [m.to_dict() for m in messages]
    }


def create_new_message_broadcast(message: Message) -> Dict[str, Any]:
    """Create the broadcast for a newly stored message."""
    return {
        "type": MessageTypes.MESSAGE,
        "payload": message.to_dict()
    }


def create_reaction_update_message(message: Message) -> Dict[str, Any]:
    """Create a reaction update for one message."""
    return {
        "type": MessageTypes.REACTION_UPDATE,
        "msgId": message.id,
        "reactions": {emoji: list(users) for emoji, users in message.reactions.items()}
    }


def create_system_message(text: str) -> Dict[str, Any]:
    """Create a transient system notice."""
    return {
        "type": MessageTypes.SYSTEM,
        "text": text,
        "timestamp": now_iso()
    }


def create_user_joined_message(user: str) -> Dict[str, Any]:
    """Create a user joined notice."""
    return create_system_message(f"{user} joined the chat")


def create_user_left_message(user: str) -> Dict[str, Any]:
    """Create a user left notice."""
    return create_system_message(f"{user} left the chat")


def create_user_list_message(users: List[str]) -> Dict[str, Any]:
    """Create a participant list message."""
    return {
        "type": MessageTypes.USER_LIST,
        "users": list(users)
    }
