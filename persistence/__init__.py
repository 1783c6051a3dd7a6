"""
Hierarchical persistence engine for nested aggregates.

This package turns dataclass record graphs into rows of a fixed table tree
and back:

Modules:
    mapping: column() / relation() declarations and descriptor extraction
    registry: SchemaRegistry building and validating Table trees
    statements: SQL text builders for every statement kind
    lifecycle: Statement preparation, rebinding and release
    convert: Value coercion between driver values and record attributes
    fetch: Loading an aggregate into a record graph
    store: Saving with reconciliation and optimistic tokens, cascade delete
    query: Filtered reads of an entity's root table
    clone: Deep copies of record graphs
    manager: EntityManager facade

Usage:
    from persistence.mapping import column, relation
    from persistence.manager import EntityManager
    from core.database import create_db_engine

Example:
    manager = EntityManager()
    manager.register(Order, "orders")
    manager.bind(create_db_engine("sqlite://"))

    report = manager.put(order)
    print(f"Saved order {report.primary_key}: {report.inserted} rows inserted")

Error Handling:
    Registration errors raise SchemaError; runtime failures raise the
    exceptions of core.exceptions or SQLAlchemy's own driver errors, which
    are never wrapped.
"""

__all__ = [
    "column",
    "relation",
    "SchemaRegistry",
    "EntityManager",
]
