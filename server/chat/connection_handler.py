"""
Connection handler module.

One handler runs per accepted connection on its own thread and drives the
client through authentication, the chat loop and the disconnect path.
"""

import enum
import threading
from typing import Optional

from common.constants import MAX_CONTENT, POLL_INTERVAL, SHUTDOWN_JOIN_TIMEOUT, MessageTypes, Responses
from common.protocol_definitions import (
    EmptyContentError, FrameReader, Message, ParseError, decode, validate_content, validate_username,
    create_auth_ok_frame, create_auth_failed_frame, create_error_frame,
    create_join_notification, create_leave_notification
)
from server.chat.broadcast_queue import BroadcastQueue, EnqueueResult
from server.chat.client_connection import ClientConnection
from server.chat.client_registry import AddResult, ClientRegistry
from server.utils.logger import logger


class ConnectionState(enum.Enum):
    CONNECTING = 'connecting'
    AUTHENTICATING = 'authenticating'
    ACTIVE = 'active'
    DISCONNECTING = 'disconnecting'
    CLOSED = 'closed'


class ConnectionHandler:
    """Per-connection state machine."""

    def __init__(self, connection: ClientConnection, registry: ClientRegistry,
                 message_queue: BroadcastQueue, shutdown_event: Optional[threading.Event] = None,
                 poll_interval: float = POLL_INTERVAL,
                 join_timeout: float = SHUTDOWN_JOIN_TIMEOUT):
        self.connection = connection
        self.registry = registry
        self.queue = message_queue
        self.shutdown_event = shutdown_event or threading.Event()
        self.poll_interval = poll_interval
        self.join_timeout = join_timeout
        self.state = ConnectionState.CONNECTING
        self.username: Optional[str] = None
        self.reader = FrameReader(self._recv)
        self._disconnect_lock = threading.Lock()

    def _recv(self, size: int) -> bytes:
        return self.connection.recv(size, self.shutdown_event, self.poll_interval)

    def run(self):
        """Thread entry point."""
        logger.log_connection(self.connection.addr)
        self.state = ConnectionState.AUTHENTICATING
        try:
            authenticated = self.authenticate()
        except OSError as e:
            logger.log_error(f"authentication from {self.connection.addr}", e)
            authenticated = False

        if not authenticated:
            self.connection.close(self.join_timeout)
            self.state = ConnectionState.CLOSED
            return

        self.state = ConnectionState.ACTIVE
        reason = 'connection closed'
        try:
            reason = self.serve()
        except OSError as e:
            reason = f"read error: {e}"
        finally:
            self.disconnect(reason)

    def _reject(self, frame: bytes, reason: str) -> bool:
        logger.log_auth_rejected(self.connection.addr, reason)
        self.connection.send_direct(frame)
        return False

    def authenticate(self) -> bool:
        """Read the AUTH frame and register the client; False rejects the connection."""
        line = self.reader.read_frame()
        if line is None:
            logger.info(f"Connection from {self.connection.addr} closed before authenticating")
            return False

        try:
            message = decode(line, truncate=False)
        except ParseError as e:
            return self._reject(create_error_frame(Responses.INVALID_AUTH_FORMAT), str(e))
        if message.kind != MessageTypes.AUTH:
            return self._reject(create_error_frame(Responses.INVALID_AUTH_FORMAT),
                                f"expected AUTH, got {message.kind}")

        username = message.sender
        if not validate_username(username):
            return self._reject(create_auth_failed_frame(Responses.INVALID_USERNAME),
                                f"invalid username {username[:40]!r}")

        result = self.registry.try_add(self.connection, username)
        if result is AddResult.DUPLICATE:
            return self._reject(create_auth_failed_frame(Responses.USERNAME_TAKEN),
                                f"username '{username}' already taken")
        if result is AddResult.FULL:
            return self._reject(create_error_frame(Responses.SERVER_FULL), "server full")

        self.username = username
        self.connection.username = username
        # AUTH_OK must reach the client before any queued broadcast frame.
        self.connection.send_direct(create_auth_ok_frame())
        self.connection.start_writer()
        logger.log_login(username, self.connection.addr)
        self._enqueue(create_join_notification(username))
        return True

    def serve(self) -> str:
        """Chat loop; returns the reason it stopped."""
        while True:
            line = self.reader.read_frame()
            if line is None:
                if self.shutdown_event.is_set():
                    return 'server shutdown'
                return 'connection closed'

            try:
                message = decode(line, truncate=False)
            except EmptyContentError as e:
                logger.log_parse_error(self.username, e)
                self.connection.send(create_error_frame(Responses.EMPTY_MESSAGE))
                continue
            except ParseError as e:
                logger.log_parse_error(self.username, e)
                continue

            if message.kind == MessageTypes.MSG:
                self.handle_chat(message)
            elif message.kind == MessageTypes.DISCONNECT:
                return 'disconnect requested'
            else:
                logger.warning(f"Ignoring {message.kind} frame from '{self.username}'")

    def handle_chat(self, message: Message):
        """Validate chat content and queue it under the authenticated name."""
        if not validate_content(message.content):
            logger.warning(f"Rejected chat from '{self.username}': over {MAX_CONTENT} bytes")
            self.connection.send(create_error_frame(Responses.MESSAGE_TOO_LONG))
            return

        # The client-supplied sender is never trusted.
        self._enqueue(Message(kind=MessageTypes.MSG, sender=self.username, content=message.content))

    def _enqueue(self, message: Message):
        if self.queue.enqueue(message) is EnqueueResult.FULL:
            logger.log_queue_full(self.username, message.kind)

    def disconnect(self, reason: str):
        """Announce the departure, unregister and close. Runs at most once."""
        with self._disconnect_lock:
            if self.state in (ConnectionState.DISCONNECTING, ConnectionState.CLOSED):
                return
            self.state = ConnectionState.DISCONNECTING

        logger.log_disconnect(self.username, reason)
        self._enqueue(create_leave_notification(self.username))
        self.registry.remove(self.connection)
        self.connection.close(self.join_timeout)
        self.state = ConnectionState.CLOSED
