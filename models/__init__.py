"""
Metadata model describing how aggregates map onto relational tables.

This package defines the in-memory schema consumed by the persistence engine:

Models:
    base: Shared enums (DataType, Cardinality) and record instantiation
    table: Field, Table, ChildTable and Entity descriptors
    ddl: Export of a Table tree as SQLAlchemy MetaData

Table Tree:
    Each registered record type produces one tree rooted at an Entity.
    Child tables hang off their parent through a parent-key Field and are
    numbered in pre-order (root = 0).

Usage:
    from models.table import Entity, ChildTable, Field
    from models.base import DataType, Cardinality
    from models.ddl import to_metadata

Example:
    # Create the tables of a registered aggregate
    entity = registry.register(Order, "orders")
    to_metadata(entity).create_all(engine)

Relationships:
    - Entity -> ChildTable (one-to-many tree edges)
    - Table -> Field (ordered columns, exactly one primary key)
    - ChildTable.parent_key -> parent Table.primary_key
"""

__all__ = [
    "DataType",
    "Cardinality",
    "Field",
    "Table",
    "ChildTable",
    "Entity",
    "to_metadata",
]
