"""
Logging configuration
"""

import logging
import sys
from typing import Optional
from core.config import settings

# Loggers of the persistence engine, one per module
ENGINE_LOGGERS = (
    "persistence.registry",
    "persistence.lifecycle",
    "persistence.store",
    "persistence.fetch",
    "persistence.query",
    "persistence.manager",
)


def setup_logging(level: Optional[str] = None):
    """
    Configure application logging.

    Args:
        level: Level name overriding settings.LOG_LEVEL
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    for name in ENGINE_LOGGERS:
        logging.getLogger(name).setLevel(log_level)

    # Bound statements are logged at INFO by the lifecycle manager
    if settings.LOG_STATEMENTS and log_level > logging.INFO:
        logging.getLogger("persistence.lifecycle").setLevel(logging.INFO)

    # SQL echo goes through create_engine(echo=...), keep the raw loggers quiet otherwise
    if not settings.SQL_ECHO:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at {level_name} level")
