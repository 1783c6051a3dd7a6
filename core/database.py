"""
Database engine management with SQLAlchemy
"""

from typing import Iterator, Optional
from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def create_db_engine(url: Optional[str] = None, **kwargs) -> Engine:
    """Create a synchronous engine, defaulting to the configured database"""
    kwargs.setdefault("echo", settings.SQL_ECHO)
    engine = create_engine(url or settings.DATABASE_URL, **kwargs)
    logger.debug(f"Engine created for dialect {engine.dialect.name}")
    return engine


# Engines connect lazily, nothing is opened at import time
engine = create_db_engine()


def get_connection() -> Iterator[Connection]:
    """Get database connection"""
    with engine.connect() as connection:
        yield connection
