"""
Core utilities and configuration for the aggregate store.

This package provides foundational components used throughout the engine:

Modules:
    config: Application configuration and environment variable management
    database: Engine creation and connection management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import create_db_engine
    from core.exceptions import SchemaError, ConflictError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Create an engine for the configured database
    engine = create_db_engine()
"""

__all__ = [
    "settings",
    "create_db_engine",
    "get_connection",
    "setup_logging",
    # Exceptions
    "PersistenceException",
    "SchemaError",
    "NotRegisteredError",
    "NotBoundError",
    "ConflictError",
    "ConversionError",
    "ConsistencyError",
    "QueryError",
]
