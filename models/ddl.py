"""
Export a registered Table tree as SQLAlchemy schema objects.

The resulting MetaData is what `create_all` (tests, scripts/init_db.py) and
any schema-upgrade tooling diff against the live catalog.
"""

from typing import Optional
from sqlalchemy import (
    BigInteger, Boolean, Column, DateTime, Float, ForeignKey, Index,
    Integer, LargeBinary, MetaData, String, Table as SATable, Text
)
from models.base import DataType
from models.table import ChildTable, Entity, Field, Table


def column_type(field: Field):
    """SQLAlchemy type for a Field"""
    if field.data_type == DataType.BOOL:
        return Boolean()
    if field.data_type == DataType.INT32:
        return Integer()
    if field.data_type == DataType.INT64:
        return BigInteger().with_variant(Integer(), "sqlite")
    if field.data_type == DataType.FLOAT:
        return Float()
    if field.data_type == DataType.DATETIME:
        return DateTime()
    if field.data_type == DataType.BLOB:
        return LargeBinary()
    if field.precision > 0:
        return String(field.precision)
    return Text()


def _build_table(table: Table, metadata: MetaData, parent: Optional[Table]) -> None:
    columns = []
    for field in table.fields:
        is_pk = field is table.primary_key
        args = [field.column, column_type(field)]
        if isinstance(table, ChildTable) and field is table.parent_key:
            args.append(ForeignKey(f"{parent.table_name}.{parent.primary_key.column}"))
        columns.append(
            Column(
                *args,
                primary_key=is_pk,
                autoincrement=is_pk and table.is_pk_serial,
                nullable=field.nullable and not is_pk,
            )
        )

    indexes = [
        Index(f"idx_{table.table_name}_{field.column}", field.column)
        for field in table.fields
        if field.is_index and field is not table.primary_key
    ]
    if isinstance(table, ChildTable) and table.parent_key is not table.primary_key:
        indexes.append(Index(f"idx_{table.table_name}_fk", table.parent_key.column))

    SATable(table.table_name, metadata, *columns, *indexes)

    for child in table.children:
        _build_table(child, metadata, table)


def to_metadata(entity: Entity, metadata: Optional[MetaData] = None) -> MetaData:
    """Add every table of the aggregate to `metadata` (a new one by default)"""
    if metadata is None:
        metadata = MetaData()
    _build_table(entity, metadata, None)
    return metadata
