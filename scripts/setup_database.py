#!/usr/bin/env python3
"""
Database setup script for the relational session store.

Creates the session table for the configured connection profile and reports
the resulting health.
"""

import sys

from httpsession.core.config import settings
from httpsession.core.exceptions import ConfigurationError
from httpsession.core.utils.database_helpers import check_database_health, get_database_info
from httpsession.db.init_db import init_database
from httpsession.db.session import create_session_engine


def main() -> bool:
    """Initialize the session table for the configured connection profile"""
    print("Session Store Database Setup")
    print("=" * 40)

    try:
        profile = settings.get_connection_profile()
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        return False

    print(f"Connection profile: {settings.session_connection} ({profile.driver})")
    engine = create_session_engine(profile)

    try:
        db_info = get_database_info(engine)
        print(f"Database Type: {db_info['type']}")
        print(f"Connected: {db_info['connected']}")

        if db_info['error']:
            print(f"Connection Error: {db_info['error']}")
            return False

        if db_info['version']:
            print(f"Database Version: {db_info['version']}")

        print("\nInitializing session table...")
        try:
            init_database(engine)
        except Exception as e:
            print(f"Database initialization failed: {e}")
            return False

        health = check_database_health(engine)
        print(f"Health Status: {health['status']}")
        if health['status'] != 'healthy':
            print(f"Warning: {health['last_error']}")
        return True
    finally:
        engine.dispose()


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
