#!/usr/bin/env python3
"""
Unit tests for the relay event log file.
"""

import tempfile
import unittest
from unittest.mock import Mock

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from server.chat.room_log import RoomLog
from server.chat.room_relay import RoomRelay
from server.utils.logger import logger


def open_writer():
    writer = Mock()
    writer.is_closing.return_value = False
    writer.transport.get_write_buffer_size.return_value = 0
    return writer


class TestEventLog(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.old_logs_dir = logger.logs_dir
        logger.set_logs_dir(self.tmp.name)
        self.relay = RoomRelay(room_log=RoomLog())

    def tearDown(self):
        logger.set_logs_dir(str(self.old_logs_dir))
        self.tmp.cleanup()

    def read_events(self):
        path = Path(self.tmp.name) / 'relay_events.log'
        return path.read_text(encoding='utf-8').splitlines()

    def join(self, name):
        conn = self.relay.open_connection(open_writer(), ('127.0.0.1', 50000))
        self.relay.handle_frame(conn, {"type": "join", "user": name})
        return conn

    def test_room_lifecycle_is_recorded(self):
        alice = self.join('alice')
        bobby = self.join('bobby')
        self.relay.handle_frame(alice, {"user": "alice", "text": "secret-ct", "iv": "secret-iv"})
        msg_id = self.relay.room_log.snapshot()[-1].id
        self.relay.handle_frame(alice, {"type": "delete_message", "id": msg_id, "user": "alice"})
        self.relay.close_connection(bobby)
        self.relay.close_connection(alice)

        events = [line.split(' | ', 1)[1] for line in self.read_events()]
        self.assertEqual(events, [
            "JOIN | alice",
            "JOIN | bobby",
            f"DELETE | alice | id={msg_id}",
            "LEAVE | bobby | removed=0",
            "LEAVE | alice | removed=0",
            "RESET",
        ])

    def test_message_contents_never_reach_the_file(self):
        alice = self.join('alice')
        self.relay.handle_frame(alice, {"user": "alice", "text": "secret-ct", "iv": "secret-iv",
                                        "replyTo": {"id": 1, "text": "secret-reply"}})
        self.relay.handle_frame(alice, {"type": "react", "msgId": 1, "emoji": "👍", "user": "alice"})
        self.relay.close_connection(alice)

        content = '\n'.join(self.read_events())
        self.assertIn("| LEAVE | alice | removed=1", content)
        for secret in ("secret-ct", "secret-iv", "secret-reply"):
            self.assertNotIn(secret, content)

    def test_ignored_delete_is_not_recorded(self):
        alice = self.join('alice')
        self.relay.handle_frame(alice, {"type": "delete_message", "id": 12345, "user": "alice"})

        self.assertFalse(any('DELETE' in line for line in self.read_events()))


if __name__ == '__main__':
    unittest.main()
