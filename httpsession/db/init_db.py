"""Initialize the database with the session table"""

import logging
from typing import Optional

from sqlalchemy.engine import Engine

from httpsession.core.config import settings
from httpsession.db.base import Base
from httpsession.db.models import SessionRecord
from httpsession.db.session import create_session_engine

logger = logging.getLogger("httpsession.database")


def init_database(engine: Optional[Engine] = None) -> None:
    """Create the session table and its index if they do not exist"""
    owned = engine is None
    if engine is None:
        engine = create_session_engine(settings.get_connection_profile())

    try:
        logger.info("Creating session tables...")
        Base.metadata.create_all(
            bind=engine,
            tables=[SessionRecord.__table__],
            checkfirst=True,
        )
        logger.info("Created database tables", extra={
            "tables": [SessionRecord.__tablename__],
        })
    except Exception as e:
        logger.error(f"Error initializing database: {e}", extra={
            "error_type": type(e).__name__,
            "database_url": "[REDACTED]"  # Don't log connection strings
        })
        logger.error("Please check database connection settings and permissions.")
        raise
    finally:
        if owned:
            engine.dispose()


if __name__ == "__main__":
    init_database()
