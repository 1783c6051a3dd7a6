"""
Custom exceptions for the aggregate store with structured error context.

This module provides the exception hierarchy raised by the registry and the
persistence engine. Each exception includes context information (table,
column, key, operation) for debugging and logging.

Exception Hierarchy:
    PersistenceException (base)
    ├── SchemaError
    ├── NotRegisteredError
    ├── NotBoundError
    ├── ConflictError
    ├── ConversionError
    ├── ConsistencyError
    └── QueryError

Driver failures (bad SQL, constraint violations, lost connections) are
SQLAlchemy's own exceptions and are propagated unchanged.
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class PersistenceException(Exception):
    """
    Base exception for all aggregate store errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (table, column, key, etc.)
        original_exception: The original exception that was caught (if any)
        table_name: Table the failure is about, taken from the context
        operation: Statement kind that failed (INSERT, UPDATE, ...), if any
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    @property
    def table_name(self) -> Optional[str]:
        return self.context.get("table_name")

    @property
    def operation(self) -> Optional[str]:
        return self.context.get("operation")

    def __str__(self) -> str:
        """Format as "Error [table/OPERATION]: message | Context: ..." """
        location = "/".join(str(p) for p in (self.table_name, self.operation) if p)
        base_msg = f"{self.__class__.__name__}"
        if location:
            base_msg += f" [{location}]"
        base_msg += f": {self.message}"

        extra = {k: v for k, v in self.context.items() if k not in ("table_name", "operation")}
        if extra:
            context_str = ", ".join(f"{k}={v!r}" for k, v in extra.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {self.original_exception}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "table_name": self.table_name,
            "operation": self.operation,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": repr(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Registration Errors
# ============================================================================

class SchemaError(PersistenceException):
    """
    Exception raised when a record type cannot be registered.

    Context should include:
        - type_name: Name of the record type
        - table_name: Table being built
        - field_name: Field that caused the error (if applicable)
    """
    pass


class NotRegisteredError(PersistenceException):
    """
    Exception raised when an operation targets an unregistered type.

    Context should include:
        - type_name: Name of the record type, or
        - table_name: Name of the requested entity table
    """
    pass


class NotBoundError(PersistenceException):
    """Exception raised when an operation runs before the manager is bound to an engine."""
    pass


# ============================================================================
# Write Errors
# ============================================================================

class ConflictError(PersistenceException):
    """
    Exception raised when the optimistic token of a record is stale.

    Nothing is committed when this is raised; the caller must re-read the
    aggregate and retry. The token is checked on the snapshot read and again
    by the root update, so a writer that lands in between is detected too.

    Context should include:
        - table_name: Entity table
        - primary_key: Key of the aggregate root
        - expected_token: Token currently stored
        - actual_token: Token carried by the record
    """
    pass


class ConsistencyError(PersistenceException):
    """
    Exception raised when a write affects more rows than it addressed.

    Context should include:
        - table_name: Table written
        - operation: INSERT, UPDATE or REMOVE
        - rows_affected: Row count reported by the driver
    """
    pass


# ============================================================================
# Read Errors
# ============================================================================

class ConversionError(PersistenceException):
    """
    Exception raised when a value cannot be coerced into its column type.

    Context should include:
        - column: Column name
        - data_type: Declared data type
        - value: Offending value (repr)
    """
    pass


class QueryError(PersistenceException):
    """
    Exception raised when an ad-hoc query cannot be built.

    Context should include:
        - table_name: Entity table
        - field_name: Field that could not be resolved (if applicable)
    """
    pass
