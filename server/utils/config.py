"""
Server configuration module.

This module handles server-side configuration settings.
"""

import os
from typing import Optional

from common.constants import DEFAULT_SERVER_HOST, DEFAULT_PORT, MAX_FRAME_SIZE, MAX_WRITE_BUFFER, LOG_DIR


class ServerConfig:
    """Server configuration class."""

    def __init__(self, host: str = DEFAULT_SERVER_HOST, port: int = DEFAULT_PORT,
                 logs_dir: str = LOG_DIR, max_frame_size: int = MAX_FRAME_SIZE,
                 max_write_buffer: int = MAX_WRITE_BUFFER):
        self.host = host
        self.port = port

        # Logging configuration
        self.logs_dir = logs_dir

        # Largest newline-delimited frame accepted from a client
        self.max_frame_size = max_frame_size

        # Unsent bytes tolerated for one peer before it is cut off
        self.max_write_buffer = max_write_buffer

    @classmethod
    def from_env(cls, host: Optional[str] = None, port: Optional[int] = None, logs_dir: Optional[str] = None):
        """
        Build a config from HOST/PORT environment variables.

        Explicit arguments win over the environment, which wins over defaults.
        """
        env_port = os.environ.get('PORT')
        if port is None and env_port:
            try:
                port = int(env_port)
            except ValueError:
                raise ValueError(f"PORT must be an integer, got {env_port!r}") from None

        return cls(
            host=host or os.environ.get('HOST') or DEFAULT_SERVER_HOST,
            port=port if port is not None else DEFAULT_PORT,
            logs_dir=logs_dir or LOG_DIR,
        )

    def get_connection_info(self):
        """Get connection information."""
        return {
            'host': self.host,
            'port': self.port
        }
