"""
Session store administration endpoints.

These endpoints let operators check the configured backend and run or force
garbage collection outside the sampled per-request schedule.
"""

import logging
from typing import Any, Dict, Generator, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, Field

from httpsession.core.config import Settings, settings
from httpsession.core.limiter import limiter
from httpsession.core.logging_config import mask_session_id
from httpsession.core.utils.database_helpers import check_database_health
from httpsession.stores import RelationalSessionStore, SessionStore, create_store

logger = logging.getLogger(__name__)

router = APIRouter()


class SessionStoreHealthResponse(BaseModel):
    """Response model for the session store health check"""
    status: str
    backend: str
    database: Optional[Dict[str, Any]] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "healthy",
                "backend": "relational",
                "database": {
                    "status": "healthy",
                    "database_type": "sqlite",
                    "connected": True,
                    "session_table": True,
                    "version": "3.45.1",
                    "last_error": None
                }
            }
        }
    }


class GarbageCollectionRequest(BaseModel):
    """Request model for a manual garbage collection run"""
    max_age: Optional[int] = Field(default=None, ge=0)

    model_config = {
        "json_schema_extra": {
            "example": {"max_age": 1440}
        }
    }


class GarbageCollectionResponse(BaseModel):
    """Response model for a garbage collection run"""
    status: str
    max_age: int
    removed: int


def get_settings() -> Settings:
    return settings


def get_session_store(
    app_settings: Settings = Depends(get_settings),
) -> Generator[SessionStore, None, None]:
    """Dependency yielding an open store, closed when the request finishes"""
    store = create_store(app_settings)
    store.open()
    try:
        yield store
    finally:
        store.close()


@router.get("/sessions/health", response_model=SessionStoreHealthResponse)
def get_session_store_health(
    store: SessionStore = Depends(get_session_store),
) -> SessionStoreHealthResponse:
    """
    Get session store health status.

    Relational backends also report database connectivity and whether the
    session table exists.
    """
    if isinstance(store, RelationalSessionStore) and store.engine is not None:
        database = check_database_health(store.engine)
        return SessionStoreHealthResponse(
            status=database["status"],
            backend=store.backend_name,
            database=database,
        )
    return SessionStoreHealthResponse(status="healthy", backend=store.backend_name)


@router.post("/sessions/gc", response_model=GarbageCollectionResponse)
@limiter.limit(settings.rate_limit_gc_endpoint)
def collect_garbage(
    request: Request,
    body: Optional[GarbageCollectionRequest] = None,
    store: SessionStore = Depends(get_session_store),
    app_settings: Settings = Depends(get_settings),
) -> GarbageCollectionResponse:
    """
    Remove expired sessions now.

    Args:
        body: Optional override of the configured maximum session age

    Returns:
        The age limit used and the number of removed sessions
    """
    max_age = body.max_age if body and body.max_age is not None else app_settings.session_gc_maxlifetime
    removed = store.gc(max_age)
    logger.info(f"Manual garbage collection removed {removed} sessions", extra={"max_age": max_age})
    return GarbageCollectionResponse(status="ok", max_age=max_age, removed=removed)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def destroy_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
) -> Response:
    """Remove a stored session. Removing an unknown session is not an error."""
    store.destroy(session_id)
    logger.info(f"Destroyed session {mask_session_id(session_id)} via admin API")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
