"""Process-local session store."""

import logging
from threading import Lock
from typing import Dict, Optional, Tuple

from httpsession.core.logging_config import mask_session_id
from httpsession.stores.base import Clock, SessionStore

logger = logging.getLogger(__name__)

# session id -> (payload, modified_at)
MemoryRecords = Dict[str, Tuple[str, int]]


class InMemorySessionStore(SessionStore):
    """
    Keeps session records in a dict shared by every store created on it.

    Suitable for single-process deployments and tests. Records are lost when
    the process exits.
    """

    backend_name = "memory"

    def __init__(
        self,
        records: Optional[MemoryRecords] = None,
        lock: Optional[Lock] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(clock=clock)
        self._records: MemoryRecords = records if records is not None else {}
        self._lock = lock or Lock()
        self._opened = False

    @property
    def is_open(self) -> bool:
        return self._opened

    def open(self) -> None:
        self._opened = True

    def read(self, session_id: str) -> str:
        with self._lock:
            record = self._records.get(session_id)
        return record[0] if record else ""

    def write(self, session_id: str, data: str) -> None:
        with self._lock:
            self._records[session_id] = (data, self.now())
        logger.debug(f"Stored session {mask_session_id(session_id)}")

    def destroy(self, session_id: str) -> None:
        with self._lock:
            self._records.pop(session_id, None)

    def gc(self, max_age: int) -> int:
        cutoff = self.now() - max_age
        with self._lock:
            expired = [sid for sid, (_, modified_at) in self._records.items() if modified_at <= cutoff]
            for sid in expired:
                del self._records[sid]
        if expired:
            logger.info(f"Garbage collected {len(expired)} expired sessions")
        return len(expired)

    def close(self) -> None:
        self._opened = False
