#!/usr/bin/env python3
"""
Unit tests for the in-memory room log.
"""

import unittest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from server.chat.room_log import RoomLog


class TestRoomLog(unittest.TestCase):

    def setUp(self):
        self.now = 5000
        self.log = RoomLog(clock=lambda: self.now)

    def test_ids_follow_clock_and_never_repeat(self):
        first = self.log.append('alice', 'ct1', 'iv1')
        second = self.log.append('alice', 'ct2', 'iv2')
        self.now = 4000  # clock stepped backwards
        third = self.log.append('bobby', 'ct3', 'iv3')
        self.now = 9000
        fourth = self.log.append('bobby', 'ct4', 'iv4')

        self.assertEqual([first.id, second.id, third.id, fourth.id], [5000, 5001, 5002, 9000])

    def test_ids_keep_increasing_after_reset(self):
        before = self.log.append('alice', 'ct', 'iv')
        self.log.clear()
        after = self.log.append('alice', 'ct', 'iv')
        self.assertGreater(after.id, before.id)
        self.assertEqual(len(self.log), 1)

    def test_append_keeps_opaque_fields(self):
        reply = {"id": 1, "user": "bobby", "text": "xx", "iv": "yy"}
        message = self.log.append('alice', 'Y2lwaGVy', 'aXY=', reply)
        self.assertEqual(message.text, 'Y2lwaGVy')
        self.assertEqual(message.iv, 'aXY=')
        self.assertEqual(message.reply_to, reply)
        self.assertEqual(message.reactions, {})

    def test_delete_requires_matching_author(self):
        message = self.log.append('alice', 'ct', 'iv')
        self.assertIsNone(self.log.delete(message.id, 'bobby'))
        self.assertIsNone(self.log.delete(message.id + 1, 'alice'))
        self.assertIs(self.log.delete(message.id, 'alice'), message)
        self.assertEqual(len(self.log), 0)

    def test_delete_accepts_float_ids_from_json(self):
        message = self.log.append('alice', 'ct', 'iv')
        self.assertIs(self.log.delete(float(message.id), 'alice'), message)

    def test_remove_by_author(self):
        self.log.append('alice', 'a1', 'iv')
        self.log.append('bobby', 'b1', 'iv')
        self.log.append('alice', 'a2', 'iv')

        self.assertEqual(self.log.remove_by_author('alice'), 2)
        self.assertEqual([m.text for m in self.log], ['b1'])
        self.assertEqual(self.log.remove_by_author('carol'), 0)

    def test_snapshot_is_a_copy(self):
        self.log.append('alice', 'ct', 'iv')
        snapshot = self.log.snapshot()
        self.log.clear()
        self.assertEqual(len(snapshot), 1)

    def test_toggle_reaction(self):
        message = self.log.append('alice', 'ct', 'iv')

        self.log.toggle_reaction(message.id, '👍', 'bobby')
        self.assertEqual(message.reactions, {'👍': ['bobby']})

        self.log.toggle_reaction(message.id, '🎉', 'bobby')
        self.assertEqual(message.reactions, {'🎉': ['bobby']})

        self.log.toggle_reaction(message.id, '🎉', 'bobby')
        self.assertEqual(message.reactions, {})

    def test_toggle_reaction_missing_message(self):
        self.assertIsNone(self.log.toggle_reaction(1, '👍', 'bobby'))

    def test_reaction_sets_never_hold_a_user_twice(self):
        message = self.log.append('alice', 'ct', 'iv')
        for emoji in ['👍', '😂', '👍', '❤️', '😂']:
            self.log.toggle_reaction(message.id, emoji, 'bobby')
            holders = [e for e, users in message.reactions.items() if 'bobby' in users]
            self.assertEqual(holders, [emoji])
            self.assertTrue(all(message.reactions.values()))


if __name__ == '__main__':
    unittest.main()
