"""
Client registry module.

Tracks authenticated connections and their usernames. Every read and write
happens under a single lock.
"""

import enum
import threading
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from common.constants import MAX_CLIENTS


class AddResult(enum.Enum):
    OK = 'ok'
    FULL = 'full'
    DUPLICATE = 'duplicate'


@dataclass(frozen=True)
class ClientRecord:
    """Registry entry for one authenticated connection."""
    connection: Any
    username: str
    authenticated: bool = True


class ClientRegistry:
    """Bounded, insertion-ordered set of authenticated clients."""

    def __init__(self, capacity: int = MAX_CLIENTS):
        self.capacity = capacity
        self._records: List[ClientRecord] = []
        self.lock = threading.Lock()

    def try_add(self, connection: Any, username: str) -> AddResult:
        """
        Register a connection under a username.

        The capacity check, the duplicate check and the append share one
        critical section, so two concurrent logins with the same name cannot
        both succeed.
        """
        with self.lock:
            if len(self._records) >= self.capacity:
                return AddResult.FULL
            if any(record.username == username for record in self._records):
                return AddResult.DUPLICATE
            self._records.append(ClientRecord(connection, username))
            return AddResult.OK

    def remove(self, connection: Any) -> Optional[ClientRecord]:
        """Remove the record for a connection; no-op if it is not registered."""
        with self.lock:
            for index, record in enumerate(self._records):
                if record.connection is connection:
                    # list deletion shifts the tail left, leaving no gaps
                    del self._records[index]
                    return record
        return None

    def exists(self, username: str) -> bool:
        with self.lock:
            return any(record.username == username for record in self._records)

    def snapshot_usernames(self) -> List[str]:
        with self.lock:
            return [record.username for record in self._records]

    def connections(self) -> list:
        """Snapshot of the registered connections."""
        with self.lock:
            return [record.connection for record in self._records]

    def for_each(self, visitor: Callable[[ClientRecord], None]):
        """
        Call visitor for every record while holding the registry lock.

        The visitor must not block; it must also not call back into the
        registry, the lock is not reentrant.
        """
        with self.lock:
            for record in self._records:
                visitor(record)

    def clear(self) -> List[ClientRecord]:
        """Drop every record and return what was registered."""
        with self.lock:
            records = self._records
            self._records = []
            return records

    def __len__(self) -> int:
        with self.lock:
            return len(self._records)
