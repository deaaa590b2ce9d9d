"""Request-scoped session handling on top of a pluggable session store.

A ``SessionManager`` owns one session for one request. It creates its store
lazily on first attribute access, keeps the decoded attributes in memory while
the request runs, and writes them back exactly once when it is closed:

    with SessionManager.from_settings(session_id) as session:
        session.set_attribute("count", session.get_attribute("count", 0) + 1)

State changes: UNINITIALIZED -> ACTIVE -> INVALIDATED (optional) -> CLOSED.
"""

import logging
import random
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from httpsession.core.codec import JsonAttributeCodec
from httpsession.core.config import Settings, settings as default_settings
from httpsession.core.exceptions import SessionStateError
from httpsession.core.logging_config import mask_session_id
from httpsession.stores.base import SessionStore
from httpsession.stores.registry import create_store

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    INVALIDATED = "invalidated"
    CLOSED = "closed"


class SessionManager:
    """Attribute access for one session during one request."""

    def __init__(
        self,
        session_id: str,
        store_factory: Callable[[], SessionStore],
        codec: Optional[JsonAttributeCodec] = None,
        gc_probability: int = 1,
        gc_divisor: int = 100,
        gc_maxlifetime: int = 1440,
        rng: Optional[random.Random] = None,
    ) -> None:
        """
        Args:
            session_id: Id supplied by the request's identity source
            store_factory: Builds the (unopened) store on first use
            codec: Converts attributes to the stored payload
            gc_probability: Numerator of the chance that close() runs gc
            gc_divisor: Denominator of the chance that close() runs gc
            gc_maxlifetime: Age in seconds after which gc removes a record
            rng: Random source for the gc sampling
        """
        if not session_id:
            raise ValueError("session_id must not be empty")
        if gc_divisor < 1:
            raise ValueError("gc_divisor must be at least 1")

        self._id: Optional[str] = session_id
        self._store_factory = store_factory
        self._codec = codec or JsonAttributeCodec()
        self._gc_probability = gc_probability
        self._gc_divisor = gc_divisor
        self._gc_maxlifetime = gc_maxlifetime
        self._rng = rng or random.Random()

        self._store: Optional[SessionStore] = None
        self._attributes: Dict[str, Any] = {}
        self._state = SessionState.UNINITIALIZED
        self._is_new = False

    @classmethod
    def from_settings(
        cls, session_id: str, settings: Optional[Settings] = None, **kwargs: Any
    ) -> "SessionManager":
        """Build a manager whose store backend and gc policy come from settings"""
        settings = settings or default_settings
        kwargs.setdefault("gc_probability", settings.session_gc_probability)
        kwargs.setdefault("gc_divisor", settings.session_gc_divisor)
        kwargs.setdefault("gc_maxlifetime", settings.session_gc_maxlifetime)
        return cls(session_id, lambda: create_store(settings), **kwargs)

    @property
    def id(self) -> Optional[str]:
        """The session id; None once the session was invalidated"""
        return self._id

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_new(self) -> bool:
        """True when no stored record existed for the id"""
        self._ensure_active()
        return self._is_new

    def open(self) -> None:
        """
        Create and open the store and load the stored attributes.

        Any error from the store aborts initialization: the store is closed
        and the error propagates, the session is never started empty.
        """
        if self._state is SessionState.ACTIVE:
            return
        if self._state is not SessionState.UNINITIALIZED:
            raise SessionStateError(f"Cannot open a session that is {self._state.value}")

        store = self._store_factory()
        try:
            store.open()
            payload = store.read(self._id)
            attributes = self._codec.decode(payload)
        except Exception:
            logger.error(f"Failed to start session {mask_session_id(self._id)}")
            store.close()
            raise

        self._store = store
        self._attributes = attributes
        self._is_new = payload == ""
        self._state = SessionState.ACTIVE
        logger.debug(f"Started session {mask_session_id(self._id)} ({store.backend_name})")

    def get_attribute(self, name: str, default: Any = None) -> Any:
        self._ensure_active()
        return self._attributes.get(name, default)

    def set_attribute(self, name: str, value: Any) -> None:
        if not isinstance(name, str):
            raise TypeError(f"Attribute names must be str, got {type(name).__name__}")
        self._ensure_active()
        self._attributes[name] = value

    def remove_attribute(self, name: str) -> None:
        self._ensure_active()
        self._attributes.pop(name, None)

    def get_attribute_names(self) -> List[str]:
        self._ensure_active()
        return list(self._attributes)

    def __len__(self) -> int:
        self._ensure_active()
        return len(self._attributes)

    def __contains__(self, name: object) -> bool:
        self._ensure_active()
        return name in self._attributes

    def invalidate(self) -> None:
        """
        Destroy the session.

        Removes the stored record, then clears the attributes and drops the
        id. The request layer must issue a new id for any later session.
        If the store fails to destroy the record the session stays active
        with its attributes untouched.
        """
        self._ensure_active()
        self._store.destroy(self._id)
        self._attributes.clear()
        logger.info(f"Invalidated session {mask_session_id(self._id)}")
        self._id = None
        self._state = SessionState.INVALIDATED

    def flush(self) -> None:
        """Write the current attributes to the store without closing it"""
        if self._state is SessionState.ACTIVE:
            self._store.write(self._id, self._codec.encode(self._attributes))

    def close(self) -> None:
        """
        End the session's lifetime.

        Flushes an active session, runs the sampled garbage collection and
        closes the store. Runs at most once; later calls do nothing.
        """
        if self._state is SessionState.CLOSED:
            return

        previous = self._state
        store = self._store
        self._state = SessionState.CLOSED
        try:
            if previous is SessionState.ACTIVE:
                store.write(self._id, self._codec.encode(self._attributes))
            if store is not None and self._should_collect_garbage():
                store.gc(self._gc_maxlifetime)
        finally:
            if store is not None:
                store.close()
            self._store = None

    def _should_collect_garbage(self) -> bool:
        if self._gc_probability <= 0:
            return False
        return self._rng.randint(1, self._gc_divisor) <= self._gc_probability

    def _ensure_active(self) -> None:
        if self._state is SessionState.UNINITIALIZED:
            self.open()
        if self._state is not SessionState.ACTIVE:
            raise SessionStateError(f"Session is {self._state.value}")

    def __enter__(self) -> "SessionManager":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
