"""
Chat client module.

This module handles client-side chat messaging over the text protocol.
"""

import socket
from typing import Optional

from common.constants import DEFAULT_HOST, DEFAULT_PORT, MessageTypes, Responses
from common.protocol_definitions import (
    AuthError, DuplicateUsernameError, FrameReader, FrameEncodeError, InvalidUsernameError,
    Message, ServerFullError, decode, validate_content,
    create_auth_frame, create_chat_frame, create_disconnect_frame
)
from client.utils.logger import logger


class ChatClient:
    """Blocking client for the chat relay protocol."""

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT, timeout: Optional[float] = 10.0):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.sock: Optional[socket.socket] = None
        self.reader: Optional[FrameReader] = None
        self.username: Optional[str] = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def connect(self):
        """Open the TCP connection."""
        try:
            self.sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        except OSError:
            logger.log_connection(self.host, self.port, False)
            raise
        self.reader = FrameReader(self.sock.recv)
        logger.log_connection(self.host, self.port, True)

    def send_raw(self, data: bytes):
        """Send bytes as-is; for frames the encoder would refuse."""
        if self.sock is None:
            raise ConnectionError("Not connected to server")
        self.sock.sendall(data)

    def read_line(self) -> Optional[str]:
        """Next line from the server without its newline; None once the server closed."""
        if self.reader is None:
            raise ConnectionError("Not connected to server")
        line = self.reader.read_frame()
        if line is None:
            return None
        return line.decode('utf-8', errors='replace').rstrip('\r')

    def read_message(self) -> Optional[Message]:
        """Next line decoded as a protocol frame."""
        line = self.read_line()
        if line is None:
            return None
        return decode(line)

    def authenticate(self, username: str):
        """Send AUTH and wait for the verdict; raises an AuthError subclass on rejection."""
        self.send_raw(create_auth_frame(username))
        reply = self.read_line()
        if reply == Responses.AUTH_OK:
            self.username = username
            logger.log_login(username, True)
            return

        logger.log_login(username, False)
        if reply == f"{Responses.AUTH_FAILED}:{Responses.USERNAME_TAKEN}":
            raise DuplicateUsernameError(Responses.USERNAME_TAKEN)
        if reply == f"{Responses.AUTH_FAILED}:{Responses.INVALID_USERNAME}":
            raise InvalidUsernameError(Responses.INVALID_USERNAME)
        if reply == f"{MessageTypes.ERROR}:{Responses.SERVER_FULL}":
            raise ServerFullError(Responses.SERVER_FULL)
        if reply is None:
            raise AuthError("Server closed the connection during authentication")
        raise AuthError(reply)

    def send_chat(self, content: str):
        """Send a chat line under the authenticated username."""
        if self.username is None:
            raise AuthError("Not authenticated")
        if not validate_content(content):
            raise FrameEncodeError("Chat content must be 1-255 bytes")
        self.send_raw(create_chat_frame(self.username, content))
        logger.log_chat_sent(content)

    def disconnect(self):
        """Send DISCONNECT and close the connection."""
        if self.sock is not None and self.username is not None:
            try:
                self.send_raw(create_disconnect_frame(self.username))
            except OSError as e:
                logger.log_error("disconnect", e)
        self.close()

    def close(self):
        if self.sock is not None:
            try:
                self.sock.close()
            finally:
                self.sock = None
                self.reader = None
