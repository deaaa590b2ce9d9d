"""Abstract base class for session store implementations.

This module defines the persistence contract every session backend must
conform to. A ``SessionManager`` only talks to this interface, so backends can
be swapped by configuration without touching request handling code.
"""

import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

Clock = Callable[[], int]


def unix_now() -> int:
    """Current time in whole Unix seconds"""
    return int(time.time())


class SessionStore(ABC):
    """Abstract base class for session persistence backends.

    Records are identified by an opaque session id and hold an opaque string
    payload plus the Unix time of their last write. Encoding of the payload is
    the caller's concern.

    Example usage:
        with create_store(settings) as store:
            store.write("abc123", '{"count":1}')
            payload = store.read("abc123")
    """

    #: Tag under which the backend is registered
    backend_name: str = "abstract"

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock: Clock = clock or unix_now

    def now(self) -> int:
        return self._clock()

    @abstractmethod
    def open(self) -> None:
        """Prepare the backend for use.

        Idempotent: opening an already open store does nothing.

        Raises:
            StoreConnectionError: If the backend is unreachable or rejects
                the configured credentials.
        """
        pass

    @abstractmethod
    def read(self, session_id: str) -> str:
        """Return the stored payload for a session.

        Args:
            session_id: Opaque session identifier.

        Returns:
            The payload, or an empty string when no record exists. A missing
            record is not an error.

        Raises:
            StorageError: If the backend query fails.
        """
        pass

    @abstractmethod
    def write(self, session_id: str, data: str) -> None:
        """Create or update the record for a session.

        Sets the record's modification time to now. Concurrent writers to
        the same id are last-write-wins.

        Raises:
            StorageError: If the backend query fails.
        """
        pass

    @abstractmethod
    def destroy(self, session_id: str) -> None:
        """Remove the record for a session. Idempotent.

        Raises:
            StorageError: If the backend query fails.
        """
        pass

    @abstractmethod
    def gc(self, max_age: int) -> int:
        """Remove every record whose age is at least ``max_age`` seconds.

        A record is expired when ``now - modified_at >= max_age``.

        Args:
            max_age: Maximum record age in seconds.

        Returns:
            Number of removed records.

        Raises:
            StorageError: If the backend query fails.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release backend resources. Idempotent."""
        pass

    def __enter__(self) -> "SessionStore":
        self.open()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
