"""
Chat module for client-side room messaging.

Handles:
- Sending room events
- Receiving and applying server frames
- Local history, reaction and presence mirror
"""
