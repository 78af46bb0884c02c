"""
Server configuration module.

This module handles server-side configuration settings.
"""

from typing import Optional

from common.constants import (
    DEFAULT_SERVER_HOST, DEFAULT_PORT, MAX_CLIENTS, QUEUE_SIZE, OUTBOUND_QUEUE_SIZE,
    POLL_INTERVAL, SEND_TIMEOUT, SHUTDOWN_JOIN_TIMEOUT, LISTEN_BACKLOG, LOG_DIR
)


class ServerConfig:
    """Server configuration class."""

    def __init__(self, host: str = DEFAULT_SERVER_HOST, port: int = DEFAULT_PORT,
                 max_clients: int = MAX_CLIENTS, queue_capacity: int = QUEUE_SIZE,
                 logs_dir: Optional[str] = LOG_DIR):
        self.host = host
        self.port = port
        self.backlog = LISTEN_BACKLOG

        # Logging configuration
        self.logs_dir = logs_dir

        # Capacity settings
        self.max_clients = max_clients
        self.queue_capacity = queue_capacity
        self.outbound_queue_size = OUTBOUND_QUEUE_SIZE

        # Timing settings
        self.poll_interval = POLL_INTERVAL
        self.send_timeout = SEND_TIMEOUT
        self.shutdown_join_timeout = SHUTDOWN_JOIN_TIMEOUT

        if max_clients < 1:
            raise ValueError("max_clients must be at least 1")
        if queue_capacity < 1:
            raise ValueError("queue_capacity must be at least 1")

    def get_connection_info(self):
        """Get connection information."""
        return {
            'host': self.host,
            'port': self.port
        }

    def get_limits(self):
        """Get capacity settings."""
        return {
            'max_clients': self.max_clients,
            'queue_capacity': self.queue_capacity,
            'outbound_queue_size': self.outbound_queue_size
        }

    def get_log_settings(self):
        """Get logging settings."""
        return {
            'logs_dir': self.logs_dir
        }
