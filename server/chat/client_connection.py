"""
Client connection module.

Wraps one accepted socket. Frames for the client go through a small bounded
outbound queue drained by a dedicated writer thread, so a slow client only
ever blocks its own writer.
"""

import queue
import select
import socket
import threading
from typing import Optional

from common.constants import OUTBOUND_QUEUE_SIZE, POLL_INTERVAL, SEND_TIMEOUT
from server.utils.logger import logger


_STOP = object()


class ClientConnection:
    """One client socket plus its outbound channel."""

    def __init__(self, sock: socket.socket, addr: tuple,
                 outbound_size: int = OUTBOUND_QUEUE_SIZE,
                 send_timeout: float = SEND_TIMEOUT):
        self.sock = sock
        self.addr = addr
        self.username: Optional[str] = None
        self._outbound = queue.Queue(maxsize=outbound_size)
        self._writer: Optional[threading.Thread] = None
        self._closed = threading.Event()
        self._close_lock = threading.Lock()
        # Bounds every sendall; reads are polled with select instead.
        self.sock.settimeout(send_timeout)

    def __repr__(self):
        return f"ClientConnection(addr={self.addr}, username={self.username!r})"

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def recv(self, size: int, shutdown_event: Optional[threading.Event] = None,
             poll_interval: float = POLL_INTERVAL) -> bytes:
        """
        Read up to size bytes.

        Waits in poll_interval slices so shutdown_event is noticed; returns
        b'' on end of stream, on shutdown, or once the connection is aborted.
        """
        while True:
            if self.closed or (shutdown_event is not None and shutdown_event.is_set()):
                return b''
            try:
                readable, _, _ = select.select([self.sock], [], [], poll_interval)
            except (OSError, ValueError):
                return b''
            if readable:
                return self.sock.recv(size)

    def send_direct(self, frame: bytes) -> bool:
        """Write a frame synchronously; only used before the writer starts."""
        try:
            self.sock.sendall(frame)
            return True
        except OSError as e:
            logger.debug(f"Direct send to {self.addr} failed: {e}")
            return False

    def start_writer(self):
        """Start the thread that drains the outbound queue to the socket."""
        self._writer = threading.Thread(
            target=self._writer_loop, name=f"writer-{self.addr}", daemon=True)
        self._writer.start()

    def send(self, frame: bytes) -> bool:
        """Queue a frame for the writer without blocking; False if it cannot be queued."""
        if self.closed:
            return False
        try:
            self._outbound.put_nowait(frame)
            return True
        except queue.Full:
            return False

    def _writer_loop(self):
        while not self.closed:
            frame = self._outbound.get()
            if frame is _STOP:
                break
            try:
                self.sock.sendall(frame)
            except OSError as e:
                logger.warning(f"Write to '{self.username}' at {self.addr} failed: {e}")
                self.abort()
                break

    def abort(self):
        """
        Shut the socket down in both directions.

        Safe to call from any thread; wakes the handler's pending read, which
        then runs the normal disconnect path.
        """
        self._closed.set()
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # already disconnected
            pass
        try:
            self._outbound.put_nowait(_STOP)
        except queue.Full:
            # writer exits on its next failed send
            pass

    def close(self, join_timeout: Optional[float] = None):
        """Stop the writer and release the socket. Idempotent."""
        with self._close_lock:
            self.abort()
            writer = self._writer
            self._writer = None
            if writer is not None and writer is not threading.current_thread():
                writer.join(join_timeout)
            try:
                self.sock.close()
            except OSError as e:
                logger.debug(f"Closing socket for {self.addr}: {e}")
