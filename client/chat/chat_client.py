"""
Room client module.

This module handles client-side room messaging: it speaks the relay protocol
and keeps a local mirror of the room (history, reactions, user list, who is
typing). ``text`` and ``iv`` are produced by the caller's encryption layer;
this client never looks inside them.
"""

import asyncio
import json
from collections import deque
from typing import Any, Callable, Dict, List, Optional, Set

from common.constants import (
    MessageTypes, ErrorCodes, DEFAULT_HOST, DEFAULT_PORT, CLIENT_INBOX_SIZE, MAX_SYSTEM_NOTICES
)
from common.protocol_definitions import (
    Message, validate_username, encode_frame,
    create_join_message, create_typing_message, create_delete_message,
    create_react_message, create_chat_message
)
from client.utils.logger import logger


class UsernameTakenError(Exception):
    """The relay refused the join because the name is already connected."""


class RoomClient:
    """Client-side room functionality."""

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT, inbox_size: int = CLIENT_INBOX_SIZE):
        self.host = host
        self.port = port
        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None
        self.username: Optional[str] = None
        self.message_handler: Optional[Callable] = None
        # Most recent frames for next_message(); the oldest is dropped when full
        self.inbox: asyncio.Queue = asyncio.Queue(maxsize=inbox_size)

        # Local mirror of the room
        self.history: List[Message] = []
        self.users: List[str] = []
        self.typing: Set[str] = set()
        self.system_notices = deque(maxlen=MAX_SYSTEM_NOTICES)
        self.last_error: Optional[Dict[str, Any]] = None

    def set_message_handler(self, handler: Callable):
        """Set a coroutine called with every decoded frame after the mirror is updated."""
        self.message_handler = handler

    async def connect(self):
        """Open the TCP connection to the relay."""
        self.reader, self.writer = await asyncio.open_connection(self.host, self.port)
        logger.log_connection(self.host, self.port, True)

    async def close(self):
        """Close the connection; the relay treats this as leaving the room."""
        if self.writer is None:
            return
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError):
            pass
        self.writer = None

    async def send_message(self, message: dict) -> bool:
        """Send a JSON frame to the server."""
        if not self.writer:
            logger.error("[ERROR] Not connected to server")
            return False

        try:
            self.writer.write(encode_frame(message))
            await self.writer.drain()
            return True
        except (ConnectionError, OSError) as e:
            logger.log_error("send", e)
            return False

    async def join(self, username: str) -> bool:
        """Request to join the room as ``username``."""
        if not validate_username(username):
            raise ValueError(
                "Username must start with a letter, contain only letters, digits "
                "or underscores, and be at least 4 characters long"
            )
        self.username = username
        logger.show_join_info(username)
        return await self.send_message(create_join_message(username))

    async def send_chat(self, text: str, iv: str, reply_to: Optional[Dict[str, Any]] = None) -> bool:
        """Send an already-encrypted message."""
        return await self.send_message(create_chat_message(self.username, text, iv, reply_to))

    async def send_typing(self, is_typing: bool) -> bool:
        return await self.send_message(create_typing_message(self.username, is_typing))

    async def delete_message(self, msg_id: int) -> bool:
        return await self.send_message(create_delete_message(msg_id, self.username))

    async def react(self, msg_id: int, emoji: str) -> bool:
        return await self.send_message(create_react_message(msg_id, emoji, self.username))

    async def listen_for_messages(self):
        """Read frames until the server closes the connection."""
        while self.reader is not None:
            try:
                data = await self.reader.readline()
            except asyncio.CancelledError:
                logger.info("[INFO] Listener cancelled")
                raise
            except (ConnectionError, OSError) as e:
                logger.error(f"[ERROR] Connection lost: {e}")
                break

            if not data:
                logger.info("[INFO] Server closed connection")
                break

            try:
                message = json.loads(data.decode('utf-8').strip())
            except json.JSONDecodeError as e:
                logger.error(f"[ERROR] Malformed JSON received: {e}")
                continue

            await self.handle_message(message)

    async def next_message(self, msg_type: Optional[str] = None, timeout: float = 5.0) -> dict:
        """Wait for the next received frame, optionally skipping until one of ``msg_type`` arrives."""
        while True:
            message = await asyncio.wait_for(self.inbox.get(), timeout)
            if msg_type is None or message.get('type') == msg_type:
                return message

    async def handle_message(self, message: dict):
        """Apply a server frame to the local mirror."""
        msg_type = message.get('type', '')

        if msg_type in (MessageTypes.HISTORY, MessageTypes.HISTORY_UPDATE):
            self.history = [Message.from_dict(m) for m in message.get('payload', [])]
        elif msg_type == MessageTypes.MESSAGE:
            self.history.append(Message.from_dict(message['payload']))
        elif msg_type == MessageTypes.REACTION_UPDATE:
            self._apply_reactions(message.get('msgId'), message.get('reactions') or {})
        elif msg_type == MessageTypes.USER_LIST:
            self.users = list(message.get('users', []))
            self.typing &= set(self.users)
        elif msg_type == MessageTypes.TYPING:
            if message.get('isTyping'):
                self.typing.add(message.get('user'))
            else:
                self.typing.discard(message.get('user'))
        elif msg_type == MessageTypes.SYSTEM:
            self.system_notices.append(message.get('text', ''))
            logger.info(f"[EVENT] {message.get('text')}")
        elif msg_type == MessageTypes.ERROR:
            self.last_error = message
            if message.get('code') == ErrorCodes.USERNAME_TAKEN:
                logger.warning(f"[ERROR] {message.get('message')}")
        else:
            logger.debug(f"Unhandled frame type {msg_type!r}")

        if self.inbox.full():
            self.inbox.get_nowait()
        self.inbox.put_nowait(message)
        if self.message_handler:
            await self.message_handler(message)

    def _apply_reactions(self, msg_id, reactions: Dict[str, List[str]]):
        for message in self.history:
            if message.id == msg_id:
                message.reactions = {emoji: list(users) for emoji, users in reactions.items()}
                return

    def find_message(self, msg_id) -> Optional[Message]:
        for message in self.history:
            if message.id == msg_id:
                return message
        return None

    def raise_for_error(self):
        """Raise if the relay rejected our join."""
        if self.last_error and self.last_error.get('code') == ErrorCodes.USERNAME_TAKEN:
            raise UsernameTakenError(self.last_error.get('message'))
