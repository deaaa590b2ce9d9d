"""Session store backends and the registry that selects one by configuration"""

from httpsession.stores.base import SessionStore
from httpsession.stores.memory import InMemorySessionStore
from httpsession.stores.registry import (
    available_stores,
    create_store,
    get_store_factory,
    register_store,
)
from httpsession.stores.relational import RelationalSessionStore

__all__ = [
    "SessionStore",
    "InMemorySessionStore",
    "RelationalSessionStore",
    "available_stores",
    "create_store",
    "get_store_factory",
    "register_store",
]
