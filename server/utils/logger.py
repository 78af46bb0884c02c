"""
Server logging module.

This module handles server-side logging functionality.
"""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from common.constants import CHAT_LOG_FILE


class ServerLogger:
    """Server logging class."""

    def __init__(self, logs_dir: Optional[str] = None, log_level: int = logging.INFO):
        # Set up main logger
        self.logger = logging.getLogger('chat_relay_server')
        self.chat_log_path: Optional[Path] = None
        self._file_lock = threading.Lock()
        self.configure(logs_dir, log_level)

    def configure(self, logs_dir: Optional[str] = None, log_level: int = logging.INFO):
        """(Re)build handlers; a logs_dir enables the chat transcript file."""
        self.logger.setLevel(log_level)

        # Remove existing handlers
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)

        # Create console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)

        # Create formatter
        formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_handler.setFormatter(formatter)

        # Add handler to logger
        self.logger.addHandler(console_handler)

        if logs_dir:
            logs_path = Path(logs_dir)
            logs_path.mkdir(parents=True, exist_ok=True)
            self.chat_log_path = logs_path / CHAT_LOG_FILE
        else:
            self.chat_log_path = None

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

    def log_connection(self, addr: tuple):
        """Log client connection."""
        self.info(f"New connection from {addr}")

    def log_login(self, username: str, addr: tuple):
        """Log user login."""
        self.info(f"User '{username}' authenticated from {addr}")

    def log_auth_rejected(self, addr: tuple, reason: str):
        """Log a refused authentication."""
        self.warning(f"Authentication from {addr} rejected: {reason}")

    def log_disconnect(self, username: str, reason: str):
        """Log user disconnect."""
        self.info(f"User '{username}' disconnected ({reason})")

    def log_chat(self, username: str, message: str):
        """Log chat message."""
        self.info(f"Chat from {username}: {message}")
        self._write_transcript(f"{datetime.now().isoformat()} | {username} | {message}")

    def log_notification(self, text: str):
        """Log a join/leave notification."""
        self.info(f"Notification: {text}")
        self._write_transcript(f"{datetime.now().isoformat()} | [NOTIFY] | {text}")

    def log_queue_full(self, username: str, kind: str):
        """Log a message dropped because the broadcast queue is full."""
        self.warning(f"Broadcast queue full, dropped {kind} from '{username}'")

    def log_parse_error(self, username: str, error: Exception):
        """Log an ignored malformed frame."""
        self.warning(f"Ignoring frame from '{username}': {error}")

    def log_error(self, operation: str, error: Exception):
        """Log error with operation context."""
        self.error(f"Error in {operation}: {error}")

    def _write_transcript(self, content: str):
        """Append a line to the chat transcript, if enabled."""
        if self.chat_log_path is None:
            return
        try:
            with self._file_lock:
                with open(self.chat_log_path, 'a', encoding='utf-8') as f:
                    f.write(content + '\n')
        except OSError as e:
            self.error(f"Failed to write to log file {self.chat_log_path}: {e}")


# Global logger instance
logger = ServerLogger()
