#!/usr/bin/env python3
"""
Initialize the library lending database.

This script:
1. Creates all database tables
2. Optionally loads a generated sample library
3. Verifies the expected tables exist

Usage:
    python scripts/init_database.py [--drop-existing] [--sample-data] [--database-url URL]
"""

import argparse
import logging
import sys

from sqlalchemy import inspect

from library_lending.config import get_config
from library_lending.database import get_db_manager
from library_lending.database.seed import seed_database
from library_lending.observability import configure_logging

logger = logging.getLogger(__name__)

EXPECTED_TABLES = {"authors", "categories", "books", "members", "borrow_records"}


def main() -> int:
    """Main entry point for database initialization."""
    parser = argparse.ArgumentParser(description="Initialize the library lending database")
    parser.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop existing tables before creating new ones",
    )
    parser.add_argument(
        "--sample-data",
        action="store_true",
        help="Load generated sample data after creating tables",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed for the sample data",
    )
    parser.add_argument(
        "--database-url",
        help="Override the configured database URL",
    )
    args = parser.parse_args()

    configure_logging(get_config())

    logger.info("Initializing database manager...")
    db_manager = get_db_manager(args.database_url)

    if not db_manager.verify_connection():
        logger.error("Failed to connect to database")
        return 1

    try:
        db_manager.init_database(drop_existing=args.drop_existing)

        if args.sample_data:
            logger.info("Loading sample data...")
            with db_manager.session_scope() as session:
                counts = seed_database(session, seed=args.seed)
            logger.info("Sample data loaded: %s", counts)

        tables = set(inspect(db_manager.engine).get_table_names())
        logger.info("Tables present: %s", ", ".join(sorted(tables)))

        missing = EXPECTED_TABLES - tables
        if missing:
            logger.error("Missing expected tables: %s", ", ".join(sorted(missing)))
            return 1

        logger.info("Database initialization complete")
        return 0
    finally:
        db_manager.close()


if __name__ == "__main__":
    sys.exit(main())
