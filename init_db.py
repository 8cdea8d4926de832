#!/usr/bin/env python3
# init_db.py
"""
Database initialization script.

Creates every table defined in heatmap.models on the configured database:
    python init_db.py
"""
import logging

from heatmap.database import engine
from heatmap.models import Base
from heatmap.utils.logging import setup_logging

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Create all database tables defined in models."""
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info(f"Tables created: {', '.join(sorted(Base.metadata.tables))}")


if __name__ == "__main__":
    setup_logging()
    init_db()
