"""
Rate limiter for the admin API.

Garbage collection scans the whole session table, so the endpoint that
triggers it is rate limited. Importable from route modules without circular
imports.
"""

import logging
from typing import Optional

from slowapi import Limiter
from slowapi.util import get_remote_address

from httpsession.core.config import settings

logger = logging.getLogger(__name__)


def get_limiter_storage() -> Optional[str]:
    """Return the Redis URL when one is configured and valid, else None for in-memory counters"""
    if not settings.redis_url:
        return None
    if not settings.redis_url.startswith(("redis://", "rediss://")):
        logger.warning(
            "Invalid REDIS_URL format: %s. Using in-memory storage instead.",
            settings.redis_url
        )
        return None
    logger.info("Using Redis backend for rate limiting")
    return settings.redis_url


def create_limiter() -> Limiter:
    storage_uri = get_limiter_storage()
    if storage_uri:
        return Limiter(key_func=get_remote_address, storage_uri=storage_uri, default_limits=[])
    logger.info("Using in-memory storage for rate limiting")
    return Limiter(key_func=get_remote_address, default_limits=[])


limiter = create_limiter()
