#!/usr/bin/env python3
"""
Unit tests for the RoomClient local mirror and request validation.
"""

import unittest
from unittest.mock import AsyncMock

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from client.chat.chat_client import RoomClient
from common.constants import CLIENT_INBOX_SIZE, MAX_SYSTEM_NOTICES


def payload(msg_id, user='alice', reactions=None):
    return {
        "id": msg_id, "user": user, "text": "ct", "iv": "iv", "replyTo": None,
        "timestamp": "2025-01-01T00:00:00.000Z", "reactions": reactions or {},
    }


class TestRoomClientMirror(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.client = RoomClient()

    async def test_history_then_message(self):
        await self.client.handle_message({"type": "history", "payload": [payload(1)]})
        await self.client.handle_message({"type": "message", "payload": payload(2, 'bobby')})
        self.assertEqual([m.id for m in self.client.history], [1, 2])

    async def test_history_update_replaces_history(self):
        await self.client.handle_message({"type": "history", "payload": [payload(1), payload(2)]})
        await self.client.handle_message({"type": "history_update", "payload": [payload(2)]})
        self.assertEqual([m.id for m in self.client.history], [2])

    async def test_reaction_update(self):
        await self.client.handle_message({"type": "history", "payload": [payload(1)]})
        await self.client.handle_message({"type": "reaction_update", "msgId": 1, "reactions": {"👍": ["bobby"]}})
        self.assertEqual(self.client.find_message(1).reactions, {"👍": ["bobby"]})

    async def test_typing_is_cleared_by_user_list(self):
        await self.client.handle_message({"type": "typing", "user": "bobby", "isTyping": True})
        self.assertEqual(self.client.typing, {"bobby"})
        await self.client.handle_message({"type": "userList", "users": ["alice"]})
        self.assertEqual(self.client.typing, set())
        self.assertEqual(self.client.users, ["alice"])

    async def test_handler_and_inbox_receive_frames(self):
        handler = AsyncMock()
        self.client.set_message_handler(handler)
        frame = {"type": "system", "text": "bobby joined the chat", "timestamp": "x"}

        await self.client.handle_message(frame)

        handler.assert_awaited_once_with(frame)
        self.assertEqual(await self.client.next_message(), frame)
        self.assertEqual(list(self.client.system_notices), ["bobby joined the chat"])

    async def test_join_validates_username(self):
        with self.assertRaises(ValueError):
            await self.client.join("bo")

    async def test_send_without_connection(self):
        self.client.username = "alice"
        self.assertFalse(await self.client.send_chat("ct", "iv"))


class TestRoomClientRetention(unittest.IsolatedAsyncioTestCase):

    async def test_inbox_keeps_only_newest_frames(self):
        client = RoomClient(inbox_size=3)
        for i in range(10):
            await client.handle_message({"type": "typing", "user": f"user{i}", "isTyping": False})

        self.assertEqual(client.inbox.qsize(), 3)
        first = await client.next_message()
        self.assertEqual(first["user"], "user7")

    async def test_inbox_bounded_when_only_handler_consumes(self):
        client = RoomClient()
        client.set_message_handler(AsyncMock())
        for i in range(CLIENT_INBOX_SIZE + 50):
            await client.handle_message({"type": "userList", "users": ["alice"]})
        self.assertEqual(client.inbox.qsize(), CLIENT_INBOX_SIZE)

    async def test_system_notices_are_capped(self):
        client = RoomClient()
        for i in range(MAX_SYSTEM_NOTICES + 20):
            await client.handle_message({"type": "system", "text": f"notice {i}", "timestamp": "x"})

        self.assertEqual(len(client.system_notices), MAX_SYSTEM_NOTICES)
        self.assertEqual(client.system_notices[-1], f"notice {MAX_SYSTEM_NOTICES + 19}")
        self.assertEqual(client.system_notices[0], "notice 20")


if __name__ == '__main__':
    unittest.main()
