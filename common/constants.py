"""
Shared constants for the STChat room relay.

This module contains all constants used across client and server components.
"""

# Network Configuration
DEFAULT_HOST = 'localhost'
DEFAULT_SERVER_HOST = '0.0.0.0'
DEFAULT_PORT = 3000

# Frame limits
MAX_FRAME_SIZE = 1024 * 1024  # 1MB per newline-delimited JSON frame
MAX_WRITE_BUFFER = 4 * MAX_FRAME_SIZE  # unsent bytes allowed to pile up for one peer

# Client-side retention
CLIENT_INBOX_SIZE = 256
MAX_SYSTEM_NOTICES = 100

# Logging
LOG_DIR = 'logs'
EVENT_LOG_FILE = 'relay_events.log'

# Display names
MIN_USERNAME_LENGTH = 4
ANONYMOUS_USER = 'Anonymous'


# Message Types
class MessageTypes:
    # Client to Server
    JOIN = 'join'
    TYPING = 'typing'
    DELETE_MESSAGE = 'delete_message'
    REACT = 'react'

    # Server to Client
    ERROR = 'error'
    HISTORY = 'history'
    MESSAGE = 'message'
    HISTORY_UPDATE = 'history_update'
    REACTION_UPDATE = 'reaction_update'
    SYSTEM = 'system'
    USER_LIST = 'userList'


class ErrorCodes:
    USERNAME_TAKEN = 'USERNAME_TAKEN'
