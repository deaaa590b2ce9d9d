from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from httpsession.core.config import ConnectionProfile


def _is_memory_database(profile: ConnectionProfile) -> bool:
    return profile.database in (None, "", ":memory:")


def get_connect_args(profile: ConnectionProfile) -> Dict[str, Any]:
    """Get database-specific connection arguments"""
    if profile.is_sqlite:
        # Connections are handed between request threads
        return {"check_same_thread": False}
    return {}


def create_session_engine(profile: ConnectionProfile) -> Engine:
    """
    Create an engine for the given connection profile.

    SQLite file databases get their parent directory created; an in-memory
    SQLite database is pinned to a single connection so every checkout sees
    the same data.
    """
    engine_kwargs: Dict[str, Any] = {"connect_args": get_connect_args(profile)}

    if profile.is_sqlite:
        if _is_memory_database(profile):
            engine_kwargs["poolclass"] = StaticPool
        else:
            Path(profile.database).parent.mkdir(parents=True, exist_ok=True)

    if profile.autocommit:
        engine_kwargs["isolation_level"] = "AUTOCOMMIT"

    return create_engine(profile.to_url(), **engine_kwargs)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)


@contextmanager
def get_db_sync(factory: sessionmaker) -> Generator[Session, None, None]:
    """Get a DB session with guaranteed release"""
    db = factory()
    try:
        yield db
    finally:
        db.close()
