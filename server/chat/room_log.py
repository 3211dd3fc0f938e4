"""
Room log module.

The in-memory, arrival-ordered message history of the shared room.
"""

from typing import Callable, Dict, Iterator, List, Optional, Any

from common.protocol_definitions import Message, now_ms, now_iso


class RoomLog:
    """
    Ordered message store for the single room.

    Ids come from a millisecond clock but are bumped when the clock has not
    advanced, so they are strictly increasing for the life of the process,
    including across resets.
    """

    def __init__(self, clock: Callable[[], int] = now_ms):
        self._messages: List[Message] = []
        self._clock = clock
        self._last_id = 0

    def _next_id(self) -> int:
        msg_id = self._clock()
        if msg_id <= self._last_id:
            msg_id = self._last_id + 1
        self._last_id = msg_id
        return msg_id

    def append(self, user: str, text: str, iv: str, reply_to: Optional[Dict[str, Any]] = None) -> Message:
        """Stamp and store a new message."""
        message = Message(
            id=self._next_id(),
            user=user,
            text=text,
            iv=iv,
            reply_to=reply_to,
            timestamp=now_iso(),
        )
        self._messages.append(message)
        return message

    def find(self, msg_id) -> Optional[Message]:
        for message in self._messages:
            if message.id == msg_id:
                return message
        return None

    def delete(self, msg_id, user: str) -> Optional[Message]:
        """Remove the message with ``msg_id`` if ``user`` wrote it. Returns the removed message."""
        for index, message in enumerate(self._messages):
            if message.id == msg_id and message.user == user:
                return self._messages.pop(index)
        return None

    def remove_by_author(self, user: str) -> int:
        """Drop every message written by ``user``; returns how many were removed."""
        kept = [m for m in self._messages if m.user != user]
        removed = len(self._messages) - len(kept)
        self._messages = kept
        return removed

    def toggle_reaction(self, msg_id, emoji: str, user: str) -> Optional[Message]:
        """
        Toggle ``user``'s reaction on a message.

        A user holds at most one emoji per message. Reacting with the emoji
        they already hold removes it; reacting with a different one moves
        them. Emptied emoji entries are pruned. Returns None if the message
        does not exist.
        """
        message = self.find(msg_id)
        if message is None:
            return None

        previous = None
        for existing, users in list(message.reactions.items()):
            if user in users:
                previous = existing
                users.remove(user)
                if not users:
                    del message.reactions[existing]

        if previous != emoji:
            message.reactions.setdefault(emoji, []).append(user)

        return message

    def clear(self):
        self._messages = []

    def snapshot(self) -> List[Message]:
        """Shallow copy of the current messages in arrival order."""
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))
