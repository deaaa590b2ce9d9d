#!/usr/bin/env python3
"""Run the session admin API"""
import uvicorn

from httpsession.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "httpsession.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )
