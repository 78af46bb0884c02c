"""
Shared constants for the chat relay.

This module contains all constants used across client and server components.
"""

# Network Configuration
DEFAULT_HOST = 'localhost'
DEFAULT_SERVER_HOST = '0.0.0.0'
DEFAULT_PORT = 8080
LISTEN_BACKLOG = 5

# Buffer Sizes
BUFFER_SIZE = 1024  # max bytes per frame, newline included
RECV_CHUNK_SIZE = 1024

# Field limits (bytes)
MAX_USERNAME = 31
MAX_CONTENT = 255

# Capacities
MAX_CLIENTS = 50
QUEUE_SIZE = 100
OUTBOUND_QUEUE_SIZE = 64  # frames buffered per recipient

# Timeouts
POLL_INTERVAL = 0.5  # seconds between shutdown checks on blocking calls
SEND_TIMEOUT = 5.0  # seconds a single socket write may block
SHUTDOWN_JOIN_TIMEOUT = 2.0

# Logging
LOG_DIR = None
CHAT_LOG_FILE = 'chat_history.log'


# Frame kinds
class MessageTypes:
    AUTH = 'AUTH'
    MSG = 'MSG'
    NOTIFY = 'NOTIFY'
    ERROR = 'ERROR'
    DISCONNECT = 'DISCONNECT'

    ALL = (AUTH, MSG, NOTIFY, ERROR, DISCONNECT)


# Server status lines
class Responses:
    AUTH_OK = 'AUTH_OK'
    AUTH_FAILED = 'AUTH_FAILED'

    USERNAME_TAKEN = 'Username already taken'
    INVALID_USERNAME = 'Invalid username'
    SERVER_FULL = 'Server is full'
    INVALID_AUTH_FORMAT = 'Invalid authentication format'
    MESSAGE_TOO_LONG = 'Message too long'
    EMPTY_MESSAGE = 'Empty message'

    JOINED_TEMPLATE = '{} joined the chat'
    LEFT_TEMPLATE = '{} left the chat'
