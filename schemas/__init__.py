"""
Pydantic schemas for data validation and serialization.

This package defines the pydantic models exchanged between the metadata
front end, the persistence engine and its callers:

Schemas:
    descriptors: Field descriptors produced by metadata extraction
    query: Ad-hoc query requests (where, sort, pagination)
    report: Save outcome counters

Usage:
    from schemas.descriptors import FieldDescriptor
    from schemas.query import QueryRequest, WhereCriteria, WhereOperation
    from schemas.report import SaveReport

Example:
    # Orders above 100 or without a customer, newest first
    request = (
        QueryRequest(limit=20)
        .where(WhereCriteria(field="total", operation=WhereOperation.GREATER, value=100))
        .or_(WhereCriteria(field="customer", value=None))
        .order_by("created_at", ascending=False)
    )
"""

__all__ = [
    "FieldDescriptor",
    "QueryRequest",
    "SortCriteria",
    "WhereCriteria",
    "WhereOperation",
    "SaveReport",
]
