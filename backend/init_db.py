#!/usr/bin/env python3
"""
Database initialization script.

Creates the PR Guard tables (repositories, pull requests, scan jobs and
results, watches, notifications) in the configured database.
"""
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

import logging

from sqlalchemy.exc import SQLAlchemyError

from prguard.database import engine, Base
from prguard import models  # noqa: F401  registers every table with Base

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def init_database():
    """Create all tables; returns False when the database rejects the DDL."""
    logger.info("Initializing database at %s", engine.url.render_as_string(hide_password=True))
    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as e:
        logger.error("Database initialization failed: %s", e)
        return False

    logger.info("Tables ready:")
    for table in Base.metadata.sorted_tables:
        logger.info("  - %s", table.name)
    return True


if __name__ == "__main__":
    success = init_database()
    sys.exit(0 if success else 1)
