"""
Server package for the STChat room relay.

This package contains all server-side functionality including:
- Session registry and room log
- Room event handling and fan-out
- Client connection management
- Configuration and utilities
"""
