"""
Client package for the STChat room relay.

This package contains the protocol client used to talk to the relay:
- Joining the room
- Sending encrypted messages, typing indicators, deletions and reactions
- Mirroring room state from server frames
"""
