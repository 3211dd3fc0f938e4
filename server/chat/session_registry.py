"""
Session registry module.

Tracks which display names are bound to live connections.
"""

import asyncio
from enum import Enum
from typing import Dict, List, Optional


class ConnectionState(Enum):
    CONNECTING = 'connecting'
    JOINED = 'joined'
    CLOSED = 'closed'


class Connection:
    """One client connection and the display name it joined with, if any."""

    def __init__(self, writer: asyncio.StreamWriter, addr=None):
        self.writer = writer
        self.addr = addr
        self.username: Optional[str] = None
        self.state = ConnectionState.CONNECTING

    @property
    def is_open(self) -> bool:
        if self.state is ConnectionState.CLOSED:
            return False
        return not self.writer.is_closing()

    @property
    def is_joined(self) -> bool:
        return self.state is ConnectionState.JOINED

    def __repr__(self):
        return f"<Connection {self.username or '?'} {self.addr} {self.state.value}>"


class SessionRegistry:
    """Display name -> joined connection, in join order."""

    def __init__(self):
        self._participants: Dict[str, Connection] = {}

    def is_name_taken(self, name: str) -> bool:
        """True iff ``name`` is bound to a connection that is still open."""
        conn = self._participants.get(name)
        return conn is not None and conn.is_open

    def current_names(self) -> List[str]:
        """Names of all open participants, in join order."""
        return [name for name, conn in self._participants.items() if conn.is_open]

    def register(self, name: str, conn: Connection):
        # Re-inserting moves a stale entry for the same name to the end.
        self._participants.pop(name, None)
        self._participants[name] = conn

    def unregister(self, name: str, conn: Connection) -> bool:
        """Remove ``name`` only while it is still bound to ``conn``."""
        if self._participants.get(name) is conn:
            del self._participants[name]
            return True
        return False

    def get(self, name: str) -> Optional[Connection]:
        return self._participants.get(name)

    def __contains__(self, name: str) -> bool:
        return self.is_name_taken(name)

    def __len__(self) -> int:
        return len(self.current_names())
