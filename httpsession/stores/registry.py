"""Registry mapping configuration tags to session store factories."""

import logging
from threading import Lock
from typing import Callable, Dict, List

from sqlalchemy.engine import Engine

from httpsession.core.config import ConnectionProfile, Settings
from httpsession.core.exceptions import ConfigurationError, StoreConnectionError
from httpsession.db.session import create_session_engine
from httpsession.stores.base import SessionStore
from httpsession.stores.memory import InMemorySessionStore, MemoryRecords
from httpsession.stores.relational import RelationalSessionStore

logger = logging.getLogger(__name__)

StoreFactory = Callable[[Settings], SessionStore]

_factories: Dict[str, StoreFactory] = {}

# Backing storage shared by every in-memory store in this process
_memory_records: MemoryRecords = {}
_memory_lock = Lock()

# One engine per connection profile, shared by the relational stores using it
_engines: Dict[str, Engine] = {}
_engines_lock = Lock()


def register_store(tag: str, factory: StoreFactory) -> None:
    """Register a factory under a configuration tag, replacing any previous one"""
    _factories[tag.lower()] = factory
    logger.debug(f"Registered session store backend: {tag}")


def get_store_factory(tag: str) -> StoreFactory:
    try:
        return _factories[tag.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown session store backend {tag!r}; available: {', '.join(available_stores())}"
        ) from None


def available_stores() -> List[str]:
    return sorted(_factories)


def create_store(settings: Settings) -> SessionStore:
    """Build an unopened store for the backend selected in settings"""
    factory = get_store_factory(settings.session_store_backend)
    return factory(settings)


def get_shared_engine(profile: ConnectionProfile) -> Engine:
    """
    Return the process-wide engine for a connection profile.

    The engine is built on first use and reused afterwards, so its pool and
    an in-memory SQLite database outlive single requests.

    Raises:
        StoreConnectionError: If the engine cannot be set up
    """
    key = profile.model_dump_json()
    with _engines_lock:
        engine = _engines.get(key)
        if engine is None:
            try:
                engine = create_session_engine(profile)
            except OSError as e:
                logger.error(f"Failed to create session store engine: {e}")
                raise StoreConnectionError(str(e), backend=RelationalSessionStore.backend_name) from e
            _engines[key] = engine
            logger.debug(f"Created session store engine ({engine.dialect.name})")
        return engine


def dispose_engines() -> None:
    """Dispose and forget every shared engine"""
    with _engines_lock:
        for engine in _engines.values():
            engine.dispose()
        _engines.clear()


def _create_memory_store(settings: Settings) -> SessionStore:
    return InMemorySessionStore(records=_memory_records, lock=_memory_lock)


def _create_relational_store(settings: Settings) -> SessionStore:
    return RelationalSessionStore(engine=get_shared_engine(settings.get_connection_profile()))


def reset_memory_store() -> None:
    """Drop every record held by the shared in-memory backend"""
    with _memory_lock:
        _memory_records.clear()


register_store("memory", _create_memory_store)
register_store("relational", _create_relational_store)
