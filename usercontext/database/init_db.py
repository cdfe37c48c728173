"""
Database Initialization - Create tables for persistent memory.
"""
from typing import Optional

from sqlalchemy.engine import Engine

from usercontext.core.logging_config import get_logger
from usercontext.database.connection import get_database
from usercontext.database.models import Base

logger = get_logger(__name__)


def init_memory_tables(engine: Optional[Engine] = None) -> bool:
    """
    Create memory tables if they don't exist.

    Args:
        engine: Engine to use. Defaults to the shared database connection.

    Returns:
        True if tables were created successfully
    """
    try:
        engine = engine or get_database().engine
        Base.metadata.create_all(engine)
        logger.info("Memory tables initialized successfully")
        return True

    except Exception as e:
        logger.error(f"Failed to initialize memory tables: {e}")
        raise


if __name__ == "__main__":
    print("Initializing memory tables...")
    init_memory_tables()
    print("Done!")
