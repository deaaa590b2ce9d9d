"""Relational session storage on SQLAlchemy.

Stores session payloads in the ``web_session`` table. Every statement is a
parameterized SQLAlchemy construct, so ids and payloads are never interpolated
into SQL text.

Writes use an exists-then-branch sequence (SELECT, then INSERT or UPDATE)
which works on every backend. Two requests creating the same new id at the
same moment can both see "absent"; the loser's INSERT hits the primary key and
surfaces as ``StorageError``. Callers serialize writes per session id above
this layer; the store does not retry.
"""
from __future__ import annotations

import logging
from threading import Lock
from typing import Optional
from weakref import WeakSet

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from httpsession.core.config import ConnectionProfile
from httpsession.core.exceptions import (
    ConfigurationError,
    SessionStateError,
    StorageError,
    StoreConnectionError,
)
from httpsession.core.logging_config import mask_session_id
from httpsession.db.base import Base
from httpsession.db.models import SESSION_ID_MAX_LENGTH, SessionRecord
from httpsession.db.session import create_session_engine, create_session_factory, get_db_sync
from httpsession.stores.base import Clock, SessionStore

logger = logging.getLogger(__name__)

# Engines whose session table is known to exist
_tables_initialized: WeakSet[Engine] = WeakSet()
_tables_init_lock: Lock = Lock()


def _native_message(error: Exception) -> str:
    """The DBAPI driver's own message when there is one"""
    orig = getattr(error, "orig", None)
    return str(orig) if orig is not None else str(error)


class RelationalSessionStore(SessionStore):
    """Session store backed by a relational database table."""

    backend_name = "relational"

    def __init__(
        self,
        profile: Optional[ConnectionProfile] = None,
        engine: Optional[Engine] = None,
        clock: Optional[Clock] = None,
        create_table: bool = True,
    ) -> None:
        """
        Args:
            profile: Connection parameters used to build an engine at open()
            engine: Externally owned engine; takes precedence over ``profile``
                and is never disposed by this store
            clock: Source of Unix seconds, defaults to the system clock
            create_table: Create the session table at open() if missing
        """
        if profile is None and engine is None:
            raise ConfigurationError("RelationalSessionStore needs a connection profile or an engine")
        super().__init__(clock=clock)
        self._profile = profile
        self._engine = engine
        self._owns_engine = engine is None
        self._create_table = create_table
        self._session_factory: Optional[sessionmaker] = None
        self._open_lock = Lock()

    @property
    def engine(self) -> Optional[Engine]:
        return self._engine

    @property
    def is_open(self) -> bool:
        return self._session_factory is not None

    def open(self) -> None:
        """Connect to the database and make sure the session table exists."""
        if self._session_factory is not None:
            return

        with self._open_lock:
            if self._session_factory is not None:
                return

            try:
                if self._engine is None:
                    self._engine = create_session_engine(self._profile)
                with self._engine.connect() as conn:
                    if self._create_table:
                        self._ensure_table(conn)
            except (SQLAlchemyError, OSError) as e:
                message = _native_message(e)
                logger.error(f"Failed to connect session store: {message}")
                self._release_engine()
                raise StoreConnectionError(message, backend=self.backend_name) from e

            self._session_factory = create_session_factory(self._engine)
            logger.debug(f"Session store connected ({self._engine.dialect.name})")

    def read(self, session_id: str) -> str:
        factory = self._require_open()
        with get_db_sync(factory) as db:
            try:
                data = db.scalar(
                    select(SessionRecord.data).where(SessionRecord.id == session_id)
                )
            except SQLAlchemyError as e:
                raise self._storage_error("read", session_id, e) from e
        return data if data is not None else ""

    def write(self, session_id: str, data: str) -> None:
        if len(session_id.encode("utf-8")) > SESSION_ID_MAX_LENGTH:
            raise StorageError(
                f"Session id exceeds {SESSION_ID_MAX_LENGTH} bytes", operation="write"
            )

        factory = self._require_open()
        now = self.now()
        with get_db_sync(factory) as db:
            try:
                existing = db.scalar(
                    select(SessionRecord.id).where(SessionRecord.id == session_id)
                )
                if existing is None:
                    db.execute(
                        insert(SessionRecord).values(id=session_id, data=data, modified_at=now)
                    )
                else:
                    db.execute(
                        update(SessionRecord)
                        .where(SessionRecord.id == session_id)
                        .values(data=data, modified_at=now)
                    )
                db.commit()
            except SQLAlchemyError as e:
                # IntegrityError here means a concurrent first write for the same id won
                db.rollback()
                raise self._storage_error("write", session_id, e) from e

    def destroy(self, session_id: str) -> None:
        factory = self._require_open()
        with get_db_sync(factory) as db:
            try:
                db.execute(delete(SessionRecord).where(SessionRecord.id == session_id))
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise self._storage_error("destroy", session_id, e) from e

    def gc(self, max_age: int) -> int:
        factory = self._require_open()
        cutoff = self.now() - max_age
        with get_db_sync(factory) as db:
            try:
                result = db.execute(
                    delete(SessionRecord).where(SessionRecord.modified_at <= cutoff)
                )
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise self._storage_error("gc", None, e) from e

        removed = max(result.rowcount or 0, 0)
        if removed:
            logger.info(f"Garbage collected {removed} expired sessions")
        return removed

    def close(self) -> None:
        self._session_factory = None
        self._release_engine()

    def _ensure_table(self, conn: Connection) -> None:
        """Create the session table once per engine."""
        if self._engine in _tables_initialized:
            return

        with _tables_init_lock:
            if self._engine in _tables_initialized:
                return
            Base.metadata.create_all(
                bind=conn,
                tables=[SessionRecord.__table__],
                checkfirst=True,
            )
            conn.commit()
            _tables_initialized.add(self._engine)
            logger.debug("Session table initialized")

    def _require_open(self) -> sessionmaker:
        if self._session_factory is None:
            raise SessionStateError("Session store is not open")
        return self._session_factory

    def _release_engine(self) -> None:
        if self._owns_engine and self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def _storage_error(
        self, operation: str, session_id: Optional[str], error: SQLAlchemyError
    ) -> StorageError:
        message = _native_message(error)
        if session_id is None:
            logger.error(f"Session {operation} failed: {message}")
        else:
            logger.error(f"Session {operation} failed for {mask_session_id(session_id)}: {message}")
        return StorageError(message, operation=operation)
