"""
Broadcast queue module.

Bounded FIFO channel between the connection handlers (producers) and the
broadcast worker (single consumer).
"""

import enum
import threading
from collections import deque
from typing import Optional

from common.constants import QUEUE_SIZE
from common.protocol_definitions import Message


class EnqueueResult(enum.Enum):
    OK = 'ok'
    FULL = 'full'


# Returned by dequeue_blocking once the queue is shut down and drained.
CLOSED = object()


class BroadcastQueue:
    """Fixed-capacity message queue guarded by a lock and a not-empty condition."""

    def __init__(self, capacity: int = QUEUE_SIZE):
        self.capacity = capacity
        self._messages = deque()
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._closed = False

    def enqueue(self, message: Message) -> EnqueueResult:
        """Append a message; a full queue drops it and returns FULL."""
        with self._lock:
            if len(self._messages) >= self.capacity:
                return EnqueueResult.FULL
            self._messages.append(message)
            self._not_empty.notify()
            return EnqueueResult.OK

    def dequeue_blocking(self, shutdown_event: Optional[threading.Event] = None,
                         timeout: Optional[float] = None):
        """
        Remove and return the oldest message.

        Blocks until a message is available. Returns CLOSED when the queue has
        been closed (or shutdown_event is set) and nothing is left to drain,
        and None if timeout elapses first.
        """
        def ready():
            return self._messages or self._closed or (
                shutdown_event is not None and shutdown_event.is_set())

        with self._not_empty:
            if not self._not_empty.wait_for(ready, timeout):
                return None
            if self._messages:
                return self._messages.popleft()
            return CLOSED

    def close(self):
        """Mark the queue closed and wake every waiting consumer."""
        with self._lock:
            self._closed = True
            self._not_empty.notify_all()

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)
