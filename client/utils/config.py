"""
Client configuration module.

This module handles client-side configuration settings.
"""

from typing import Optional

from common.constants import DEFAULT_HOST, DEFAULT_PORT


class ClientConfig:
    """Client configuration class."""

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT, username: Optional[str] = None):
        self.host = host
        self.port = port
        self.username = username

        # Connection settings
        self.connect_timeout = 10.0  # seconds

    def get_connection_info(self):
        """Get connection information."""
        return {
            'host': self.host,
            'port': self.port,
            'username': self.username
        }
