"""
Server logging module.

This module handles server-side logging functionality.

Message contents are end-to-end encrypted; log lines carry ids, authors and
event kinds only, never ciphertext or IVs.
"""

import logging
from datetime import datetime
from pathlib import Path

from common.constants import LOG_DIR, EVENT_LOG_FILE


class ServerLogger:
    """Server logging class."""

    def __init__(self, logs_dir: str = LOG_DIR, log_level: int = logging.INFO):
        self.logs_dir = Path(logs_dir)
        self.logs_dir.mkdir(exist_ok=True)

        # Set up main logger
        self.logger = logging.getLogger('stchat_relay')
        self.logger.setLevel(log_level)

        # Remove existing handlers
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)

        formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        self.event_log_path = self.logs_dir / EVENT_LOG_FILE

    def set_level(self, log_level: int):
        """Change the level of the logger and its handlers."""
        self.logger.setLevel(log_level)
        for handler in self.logger.handlers:
            handler.setLevel(log_level)

    def set_logs_dir(self, logs_dir: str):
        """Point the event log at a different directory."""
        self.logs_dir = Path(logs_dir)
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        self.event_log_path = self.logs_dir / EVENT_LOG_FILE

    def info(self, message: str):
        """Log info message."""
        self.logger.info(message)

    def error(self, message: str):
        """Log error message."""
        self.logger.error(message)

    def warning(self, message: str):
        """Log warning message."""
        self.logger.warning(message)

    def debug(self, message: str):
        """Log debug message."""
        self.logger.debug(message)

    def log_connection(self, addr):
        """Log client connection."""
        self.info(f"New connection from {addr}")

    def log_join(self, username: str, addr, participant_count: int):
        """Log a successful join."""
        self.info(f"{username} joined successfully from {addr} ({participant_count} online)")
        self._write_to_file(self.event_log_path, f"{datetime.now().isoformat()} | JOIN | {username}")

    def log_join_rejected(self, username: str, addr):
        """Log a join refused because the name is in use."""
        self.warning(f"Rejected join for '{username}' from {addr}: username taken")

    def log_message(self, username: str, msg_id: int):
        """Log a stored message (metadata only)."""
        self.debug(f"Message id={msg_id} from {username}")

    def log_delete(self, username: str, msg_id, deleted: bool):
        """Log a delete request."""
        if deleted:
            self.info(f"{username} deleted message id={msg_id}")
            self._write_to_file(self.event_log_path, f"{datetime.now().isoformat()} | DELETE | {username} | id={msg_id}")
        else:
            self.debug(f"Ignored delete of id={msg_id} by {username}: no matching message")

    def log_reaction(self, username: str, msg_id, emoji: str, applied: bool):
        """Log a reaction toggle."""
        if applied:
            self.debug(f"{username} toggled {emoji} on message id={msg_id}")
        else:
            self.debug(f"Ignored reaction by {username} on id={msg_id}: no such message")

    def log_disconnect(self, username: str, removed_messages: int):
        """Log user disconnect."""
        self.info(f"{username} disconnected, removed {removed_messages} message(s)")
        self._write_to_file(self.event_log_path, f"{datetime.now().isoformat()} | LEAVE | {username} | removed={removed_messages}")

    def log_room_reset(self):
        """Log the room being emptied after the last connection closed."""
        self.info("Room reset - all users left")
        self._write_to_file(self.event_log_path, f"{datetime.now().isoformat()} | RESET")

    def log_protocol_error(self, addr, error: Exception):
        """Log a dropped malformed frame."""
        self.warning(f"Dropped malformed frame from {addr}: {error}")

    def log_error(self, operation: str, error: Exception):
        """Log error with operation context."""
        self.error(f"Error in {operation}: {error}")

    def _write_to_file(self, file_path: Path, content: str):
        """Write content to log file."""
        try:
            with open(file_path, 'a', encoding='utf-8') as f:
                f.write(content + '\n')
        except OSError as e:
            self.error(f"Failed to write to log file {file_path}: {e}")


# Global logger instance
logger = ServerLogger()
