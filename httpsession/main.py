import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from httpsession.api import sessions
from httpsession.core.config import settings
from httpsession.core.exceptions import ConfigurationError, StorageError, StoreConnectionError
from httpsession.core.limiter import limiter
from httpsession.core.logging_config import (
    correlation_id_ctx,
    get_correlation_id,
    init_application_logging,
    set_correlation_id,
)

init_application_logging()

logger = logging.getLogger("httpsession.main")

app = FastAPI(
    title=settings.app_name,
    description="Administration API for the session store",
    version=settings.version,
)

# Attach limiter to app.state for access in route decorators
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    """Tag every log line of a request with the caller's X-Request-ID or a new id"""
    token = correlation_id_ctx.set(None)
    incoming = request.headers.get("x-request-id")
    if incoming:
        set_correlation_id(incoming)
    correlation_id = get_correlation_id()
    try:
        response = await call_next(request)
    finally:
        correlation_id_ctx.reset(token)
    response.headers["X-Request-ID"] = correlation_id
    return response


@app.exception_handler(StoreConnectionError)
async def store_connection_error_handler(request: Request, exc: StoreConnectionError) -> JSONResponse:
    logger.error(f"Session store unavailable: {exc.message}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "unhealthy", "detail": "Session store unavailable"},
    )


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error(f"Session store operation failed: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "error", "detail": f"Session store {exc.operation or 'operation'} failed"},
    )


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error(f"Session store misconfigured: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"status": "error", "detail": str(exc)},
    )


app.include_router(sessions.router, prefix="/api", tags=["Sessions"])

logger.info(
    "Session admin API initialized",
    extra={
        "backend": settings.session_store_backend,
        "rate_limit_gc": settings.rate_limit_gc_endpoint,
    },
)


@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "version": settings.version}
