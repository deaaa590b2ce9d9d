"""
Database helper utilities for the relational session store.

Provides database-agnostic inspection used by the admin health endpoint.
"""

import logging
from typing import Any, Dict

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from httpsession.db.models import SessionRecord

logger = logging.getLogger(__name__)


def get_database_type(engine: Engine) -> str:
    """
    Get the database type of an engine.

    Returns:
        str: Database type ('sqlite', 'postgresql', 'mysql', etc.)
    """
    return engine.dialect.name


def get_database_info(engine: Engine) -> Dict[str, Any]:
    """
    Get database connection information and metadata.

    Returns:
        Dict containing database type, connection status, tables and version
    """
    db_type = get_database_type(engine)
    info: Dict[str, Any] = {
        "type": db_type,
        "connected": False,
        "tables": [],
        "version": None,
        "error": None
    }

    try:
        with engine.connect() as conn:
            info["connected"] = True

            if db_type == "sqlite":
                info["version"] = conn.execute(text("SELECT sqlite_version()")).scalar()
            elif db_type in ("postgresql", "mysql", "mariadb"):
                version_str = conn.execute(text("SELECT version()")).scalar()
                info["version"] = str(version_str).split()[0] if version_str else "unknown"

            info["tables"] = inspect(conn).get_table_names()

    except SQLAlchemyError as e:
        logger.error(f"Database connection error: {e}")
        info["error"] = str(e)

    return info


def check_database_health(engine: Engine) -> Dict[str, Any]:
    """
    Perform database health check for the session table.

    Returns:
        Dict containing health status and metrics
    """
    db_info = get_database_info(engine)
    health: Dict[str, Any] = {
        "status": "healthy",
        "database_type": db_info["type"],
        "connected": db_info["connected"],
        "session_table": SessionRecord.__tablename__ in db_info["tables"],
        "version": db_info["version"],
        "last_error": None
    }

    if db_info["error"]:
        health["status"] = "unhealthy"
        health["last_error"] = db_info["error"]
    elif not health["session_table"]:
        health["status"] = "warning"
        health["last_error"] = "Session table not found - database may need initialization"

    return health
