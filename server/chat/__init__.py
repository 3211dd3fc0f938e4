"""
Chat module for the server-side room relay.

Handles:
- Display name registration
- In-memory message history
- Message, typing, delete and reaction events
- Join and leave notices
"""
