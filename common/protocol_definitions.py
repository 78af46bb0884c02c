"""
Protocol definitions for the chat relay.

This module defines the frame structures, the text codec and the validators
shared by client and server components.

Wire format: newline-terminated, colon-delimited ASCII frames.

    AUTH:<username>
    MSG:<username>:<content>      (content may contain ':')
    NOTIFY:<text>
    ERROR:<text>
    DISCONNECT:<username>

The server additionally answers authentication with the status lines
``AUTH_OK`` and ``AUTH_FAILED:<reason>``.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Union

from common.constants import (
    BUFFER_SIZE, MAX_CONTENT, MAX_USERNAME, RECV_CHUNK_SIZE, MessageTypes, Responses
)


ENCODING = 'utf-8'


class ProtocolError(Exception):
    """Base class for protocol level failures."""


class ParseError(ProtocolError):
    """A received line could not be decoded into a frame."""


class UnknownKindError(ParseError):
    """The frame kind is not one of the five protocol kinds."""


class MalformedFrameError(ParseError):
    """A required field of the frame is missing or empty."""


class EmptyContentError(MalformedFrameError):
    """A MSG frame carries a sender but no content."""


class FrameEncodeError(ProtocolError):
    """Fields cannot be encoded into a single valid frame."""


class AuthError(ProtocolError):
    """Authentication was refused by the server."""


class InvalidUsernameError(AuthError):
    pass


class DuplicateUsernameError(AuthError):
    pass


class ServerFullError(AuthError):
    pass


@dataclass(frozen=True)
class Message:
    """Decoded protocol frame."""
    kind: str
    sender: str = ''
    content: str = ''


def _byte_len(text: str) -> int:
    return len(text.encode(ENCODING))


def _truncate(text: str, limit: int) -> str:
    """Cut text to at most limit encoded bytes without splitting a character."""
    raw = text.encode(ENCODING)
    if len(raw) <= limit:
        return text
    return raw[:limit].decode(ENCODING, errors='ignore')


def validate_username(username: Optional[str]) -> bool:
    """Usernames are 1-31 ASCII letters, digits or underscores."""
    if not username or len(username) > MAX_USERNAME:
        return False
    return all(c.isascii() and (c.isalnum() or c == '_') for c in username)


def validate_content(content: Optional[str]) -> bool:
    """Chat content is 1-255 bytes."""
    if not content:
        return False
    return _byte_len(content) <= MAX_CONTENT


def _check_field(name: str, value: str, limit: int, allow_colon: bool = True):
    if not isinstance(value, str):
        raise FrameEncodeError(f"{name} must be a string, got {type(value).__name__}")
    if '\n' in value or '\r' in value:
        raise FrameEncodeError(f"{name} must not contain line breaks")
    if not allow_colon and ':' in value:
        raise FrameEncodeError(f"{name} must not contain ':'")
    if _byte_len(value) > limit:
        raise FrameEncodeError(f"{name} exceeds {limit} bytes")


def encode(kind: str, *fields: str) -> bytes:
    """
    Encode a frame of the given kind.

    AUTH and DISCONNECT take a username, MSG takes a sender and content,
    NOTIFY and ERROR take a single text field. Oversized fields and embedded
    line breaks raise FrameEncodeError instead of being truncated.
    """
    if kind in (MessageTypes.AUTH, MessageTypes.DISCONNECT):
        if len(fields) != 1:
            raise FrameEncodeError(f"{kind} takes exactly one field")
        _check_field('username', fields[0], MAX_USERNAME, allow_colon=False)
    elif kind == MessageTypes.MSG:
        if len(fields) != 2:
            raise FrameEncodeError("MSG takes a sender and content")
        _check_field('sender', fields[0], MAX_USERNAME, allow_colon=False)
        _check_field('content', fields[1], MAX_CONTENT)
    elif kind in (MessageTypes.NOTIFY, MessageTypes.ERROR):
        if len(fields) != 1:
            raise FrameEncodeError(f"{kind} takes exactly one field")
        _check_field('text', fields[0], MAX_CONTENT)
    else:
        raise FrameEncodeError(f"Unknown frame kind '{kind}'")

    frame = ':'.join((kind,) + fields).encode(ENCODING) + b'\n'
    if len(frame) > BUFFER_SIZE:
        raise FrameEncodeError(f"Frame exceeds {BUFFER_SIZE} bytes")
    return frame


def encode_message(message: Message) -> bytes:
    """Encode a decoded Message back into its wire frame."""
    if message.kind == MessageTypes.MSG:
        return encode(MessageTypes.MSG, message.sender, message.content)
    if message.kind in (MessageTypes.NOTIFY, MessageTypes.ERROR):
        return encode(message.kind, message.content)
    return encode(message.kind, message.sender)


def decode(raw_line: Union[str, bytes], truncate: bool = True) -> Message:
    """
    Decode one line into a Message.

    Raises UnknownKindError for an unrecognised kind and MalformedFrameError
    when a required field is missing. With truncate=True (the default)
    oversized fields are cut to their capacity; with truncate=False they are
    returned whole so the caller can reject them.
    """
    if isinstance(raw_line, bytes):
        line = raw_line.decode(ENCODING, errors='replace')
    else:
        line = raw_line
    if line.endswith('\n'):
        line = line[:-1]
    if line.endswith('\r'):
        line = line[:-1]
    if not line:
        raise MalformedFrameError("Empty frame")

    kind, sep, rest = line.partition(':')
    if kind not in MessageTypes.ALL:
        raise UnknownKindError(f"Unknown frame kind '{kind[:16]}'")
    if not sep or not rest:
        raise MalformedFrameError(f"{kind} frame has no payload")

    sender = ''
    content = ''
    if kind in (MessageTypes.AUTH, MessageTypes.DISCONNECT):
        sender = rest.split(':', 1)[0]
        if not sender:
            raise MalformedFrameError(f"{kind} frame has no username")
    elif kind == MessageTypes.MSG:
        sender, sep, content = rest.partition(':')
        if not sender or not sep:
            raise MalformedFrameError("MSG frame needs a sender and a content field")
        if not content:
            raise EmptyContentError("MSG frame has no content")
    else:
        content = rest

    if truncate:
        sender = _truncate(sender, MAX_USERNAME)
        content = _truncate(content, MAX_CONTENT)
    return Message(kind=kind, sender=sender, content=content)


def _status_frame(text: str) -> bytes:
    return text.encode(ENCODING) + b'\n'


def create_auth_frame(username: str) -> bytes:
    """Create an authentication frame."""
    return encode(MessageTypes.AUTH, username)


def create_chat_frame(sender: str, content: str) -> bytes:
    """Create a chat frame."""
    return encode(MessageTypes.MSG, sender, content)


def create_notify_frame(text: str) -> bytes:
    """Create a notification frame."""
    return encode(MessageTypes.NOTIFY, text)


def create_error_frame(text: str) -> bytes:
    """Create an error frame."""
    return encode(MessageTypes.ERROR, text)


def create_disconnect_frame(username: str) -> bytes:
    """Create a disconnect frame."""
    return encode(MessageTypes.DISCONNECT, username)


def create_auth_ok_frame() -> bytes:
    """Create an authentication success status line."""
    return _status_frame(Responses.AUTH_OK)


def create_auth_failed_frame(reason: str) -> bytes:
    """Create an authentication failure status line."""
    return _status_frame(f"{Responses.AUTH_FAILED}:{reason}")


def create_join_notification(username: str) -> Message:
    """Create the notification queued when a user joins."""
    return Message(kind=MessageTypes.NOTIFY, content=Responses.JOINED_TEMPLATE.format(username))


def create_leave_notification(username: str) -> Message:
    """Create the notification queued when a user leaves."""
    return Message(kind=MessageTypes.NOTIFY, content=Responses.LEFT_TEMPLATE.format(username))


class FrameReader:
    """
    Reassemble newline-terminated frames from a byte stream.

    ``recv`` is called with a chunk size and returns bytes, ``b''`` at end of
    stream. Exceptions raised by ``recv`` (timeouts included) propagate with
    the buffered data left intact, so the caller may retry. A line longer than
    the frame capacity is cut to BUFFER_SIZE - 1 bytes and the remainder up to
    the next newline is discarded.
    """

    def __init__(self, recv: Callable[[int], bytes], max_frame: int = BUFFER_SIZE,
                 chunk_size: int = RECV_CHUNK_SIZE):
        self._recv = recv
        self._limit = max_frame - 1
        self._chunk_size = chunk_size
        self._buffer = bytearray()
        self._discarding = False
        self._eof = False

    def read_frame(self) -> Optional[bytes]:
        """Return the next line without its newline, or None at end of stream."""
        while True:
            newline = self._buffer.find(b'\n')
            if newline >= 0:
                line = bytes(self._buffer[:newline])
                del self._buffer[:newline + 1]
                if self._discarding:
                    self._discarding = False
                    continue
                return line[:self._limit]

            if len(self._buffer) >= self._limit:
                if self._discarding:
                    self._buffer.clear()
                else:
                    line = bytes(self._buffer[:self._limit])
                    self._buffer.clear()
                    self._discarding = True
                    return line

            if self._eof:
                # Unterminated trailing data still counts as a frame.
                if self._buffer and not self._discarding:
                    line = bytes(self._buffer)
                    self._buffer.clear()
                    return line
                return None

            chunk = self._recv(self._chunk_size)
            if not chunk:
                self._eof = True
                continue
            self._buffer.extend(chunk)
