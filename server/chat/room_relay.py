"""
Room relay module.

Applies room events to the shared log and fans the results out to every
open connection. The relay never decrypts anything: message text, IV and
reply references are stored and forwarded exactly as received.

All handlers are synchronous. Each one finishes its mutation and its
fan-out writes before returning, so on a single event loop events are
applied strictly one at a time. Flow control (drain) is left to the caller;
peers that stop reading are cut off once their backlog passes
``max_write_buffer``.
"""

from typing import Dict, List, Optional

from common.constants import MAX_WRITE_BUFFER
from common.protocol_definitions import (
    ProtocolError, InboundEvent, JoinEvent, TypingEvent, DeleteMessageEvent,
    ReactEvent, NewMessageEvent, parse_event, encode_frame,
    create_username_taken_message, create_history_message, create_history_update_message,
    create_new_message_broadcast, create_reaction_update_message, create_typing_message,
    create_user_joined_message, create_user_left_message, create_user_list_message
)
from server.chat.room_log import RoomLog
from server.chat.session_registry import Connection, ConnectionState, SessionRegistry
from server.utils.logger import logger


class RoomRelay:
    """Server-side room state and event handling."""

    def __init__(self, registry: Optional[SessionRegistry] = None, room_log: Optional[RoomLog] = None,
                 max_write_buffer: int = MAX_WRITE_BUFFER):
        self.registry = registry if registry is not None else SessionRegistry()
        self.room_log = room_log if room_log is not None else RoomLog()
        self.connections: List[Connection] = []
        self.max_write_buffer = max_write_buffer

    # Connection lifecycle

    def open_connection(self, writer, addr=None) -> Connection:
        """Track a freshly accepted connection in the ``connecting`` state."""
        conn = Connection(writer, addr)
        self.connections.append(conn)
        logger.log_connection(addr)
        return conn

    def close_connection(self, conn: Connection):
        """
        Tear down a connection.

        A joined participant is unregistered, their messages are purged, and
        the remaining connections get a leave notice, the updated history and
        the updated user list. When nobody is left the room is reset.
        """
        if conn.state is ConnectionState.CLOSED:
            return

        was_joined = conn.is_joined
        conn.state = ConnectionState.CLOSED
        if conn in self.connections:
            self.connections.remove(conn)

        if was_joined and self.registry.unregister(conn.username, conn):
            removed = self.room_log.remove_by_author(conn.username)
            logger.log_disconnect(conn.username, removed)

            self.broadcast(create_user_left_message(conn.username))
            self.broadcast(create_history_update_message(self.room_log.snapshot()))
            self.broadcast_user_list()
        else:
            logger.debug(f"Client disconnected before joining: {conn.addr}")

        if not self.open_connections() and (was_joined or len(self.room_log)):
            self.room_log.clear()
            logger.log_room_reset()

    def open_connections(self) -> List[Connection]:
        return [conn for conn in self.connections if conn.is_open]

    def get_participant_count(self) -> int:
        """Get the number of joined participants with open connections."""
        return len(self.registry)

    # Sending

    def _write(self, conn: Connection, data: bytes, kind) -> bool:
        """
        Queue one encoded frame on a connection.

        A peer whose unsent backlog is already over ``max_write_buffer`` has
        stopped reading; it is aborted instead of being buffered for.
        """
        transport = getattr(conn.writer, 'transport', None)
        if transport is not None:
            backlog = transport.get_write_buffer_size()
            if backlog > self.max_write_buffer:
                logger.warning(f"Aborting {conn.addr}: {backlog} bytes unsent, not reading")
                transport.abort()
                return False
        try:
            conn.writer.write(data)
            return True
        except Exception as e:
            logger.error(f"Failed to send {kind} to {conn.addr}: {e}")
            return False

    def send_message(self, conn: Connection, message: dict) -> bool:
        """Write one JSON frame to a single connection. Returns False if it was skipped or failed."""
        if not conn.is_open:
            return False
        return self._write(conn, encode_frame(message), message.get('type'))

    def broadcast(self, message: dict, exclude: Optional[Connection] = None) -> int:
        """
        Best-effort write to every open connection except ``exclude``.

        Closed and stalled connections are skipped and a failing connection
        never stops the loop. Returns the number of connections written to.
        """
        data = encode_frame(message)
        delivered = 0
        for conn in list(self.connections):
            if conn is exclude or not conn.is_open:
                continue
            if self._write(conn, data, message.get('type')):
                delivered += 1
        return delivered

    def broadcast_user_list(self):
        self.broadcast(create_user_list_message(self.registry.current_names()))

    # Event handling

    def handle_frame(self, conn: Connection, data) -> InboundEvent:
        """
        Parse a decoded JSON frame and apply it.

        Raises:
            ProtocolError: if the frame is malformed or not valid for the
                connection's state.
        """
        event = parse_event(data)
        self.handle_event(conn, event)
        return event

    def handle_event(self, conn: Connection, event: InboundEvent):
        """Dispatch a parsed event to its handler."""
        if isinstance(event, JoinEvent):
            self.handle_join(conn, event)
        elif isinstance(event, TypingEvent):
            self.handle_typing(conn, event)
        elif isinstance(event, NewMessageEvent):
            self.handle_new_message(conn, event)
        elif isinstance(event, DeleteMessageEvent):
            self.handle_delete(conn, event)
        elif isinstance(event, ReactEvent):
            self.handle_react(conn, event)
        else:
            raise ProtocolError(f"Unsupported event {type(event).__name__}")

    def handle_join(self, conn: Connection, event: JoinEvent) -> bool:
        """Process a join request. Returns True if the connection joined."""
        if conn.state is not ConnectionState.CONNECTING:
            raise ProtocolError(f"Connection already {conn.state.value} as '{conn.username}'")

        username = event.user
        if self.registry.is_name_taken(username):
            logger.log_join_rejected(username, conn.addr)
            self.send_message(conn, create_username_taken_message(username))
            return False

        conn.username = username
        conn.state = ConnectionState.JOINED
        self.registry.register(username, conn)
        logger.log_join(username, conn.addr, self.get_participant_count())

        # History goes to the newcomer only, the notice to everybody else,
        # and the user list to everyone including the newcomer.
        self.send_message(conn, create_history_message(self.room_log.snapshot()))
        self.broadcast(create_user_joined_message(username), exclude=conn)
        self.broadcast_user_list()
        return True

    def handle_typing(self, conn: Connection, event: TypingEvent):
        """Relay a typing indicator to everyone but the sender. Nothing is stored."""
        self.broadcast(create_typing_message(event.user, event.is_typing), exclude=conn)

    def handle_new_message(self, conn: Connection, event: NewMessageEvent):
        """Store a new message and broadcast it to everyone, sender included."""
        message = self.room_log.append(event.user, event.text, event.iv, event.reply_to)
        logger.log_message(message.user, message.id)
        self.broadcast(create_new_message_broadcast(message))
        return message

    def handle_delete(self, conn: Connection, event: DeleteMessageEvent) -> bool:
        """Delete the author's own message. Unknown ids and foreign messages are ignored."""
        removed = self.room_log.delete(event.id, event.user)
        logger.log_delete(event.user, event.id, removed is not None)
        if removed is None:
            return False

        self.broadcast(create_history_update_message(self.room_log.snapshot()))
        return True

    def handle_react(self, conn: Connection, event: ReactEvent) -> bool:
        """Toggle a reaction and broadcast the message's new reaction map."""
        message = self.room_log.toggle_reaction(event.msg_id, event.emoji, event.user)
        logger.log_reaction(event.user, event.msg_id, event.emoji, message is not None)
        if message is None:
            return False

        self.broadcast(create_reaction_update_message(message))
        return True

    def get_status(self) -> Dict[str, int]:
        """Snapshot of connection and log counters."""
        return {
            'connections': len(self.open_connections()),
            'participants': self.get_participant_count(),
            'messages': len(self.room_log),
        }
