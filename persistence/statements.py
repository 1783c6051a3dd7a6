"""
SQL text for every statement kind of a Table.

Pure string builders. Nested tables are addressed through their ancestor
path (root Entity first, parent last) and aliased as ``t<table_no>``.
Placeholders are positional ``?``; column order always follows Field
declaration order so parameter lists can be built positionally.
"""

from typing import Iterator, List, Optional, Sequence, Tuple
from models.table import Entity, Field, Table

TablePath = Sequence[Table]


def alias(table: Table) -> str:
    return f"t{table.table_no}"


def walk(entity: Entity) -> Iterator[Tuple[Table, List[Table]]]:
    """Pre-order (table, ancestor path) pairs of an aggregate"""
    def _walk(table: Table, path: List[Table]):
        yield table, path
        for child in table.children:
            yield from _walk(child, path + [table])
    yield from _walk(entity, [])


def _joins(table: Table, ancestors: TablePath) -> str:
    """INNER JOINs from `table` up through `ancestors` (nearest last)"""
    chain = list(ancestors) + [table]
    parts = []
    for i in range(len(chain) - 2, -1, -1):
        upper, lower = chain[i], chain[i + 1]
        parts.append(
            f" INNER JOIN {upper.table_name} {alias(upper)}"
            f" ON {alias(upper)}.{upper.primary_key.column} = {alias(lower)}.{lower.parent_key.column}"
        )
    return "".join(parts)


def select_fields(entity: Entity) -> str:
    """Column list fragment of the root table, for ad-hoc queries"""
    columns = ", ".join(f.column for f in entity.fields)
    return f"SELECT {columns} FROM {entity.table_name}"


def select_query(table: Table, path: TablePath = ()) -> str:
    if not path:
        return f"{select_fields(table)} WHERE {table.primary_key.column} = ?"

    a = alias(table)
    columns = ", ".join(f"{a}.{f.column}" for f in table.fields)
    return (
        f"SELECT {columns} FROM {table.table_name} {a}"
        f"{_joins(table, path)}"
        f" WHERE {a}.{table.parent_key.column} = ?"
        f" ORDER BY {a}.{table.primary_key.column}"
    )


def info_query(table: Table, path: TablePath = ()) -> str:
    """Keys (and, for the root, the token) of all rows under one root key"""
    if not path:
        token = table.token_field.column if getattr(table, "token_field", None) else "0"
        return (
            f"SELECT {table.primary_key.column}, {token} FROM {table.table_name}"
            f" WHERE {table.primary_key.column} = ?"
        )

    # path[0] is the root; the first child level holds the root key
    ancestors = list(path[1:])
    top = ancestors[0] if ancestors else table
    a = alias(table)
    return (
        f"SELECT {a}.{table.primary_key.column} FROM {table.table_name} {a}"
        f"{_joins(table, ancestors)}"
        f" WHERE {alias(top)}.{top.parent_key.column} = ?"
    )


def insert_columns(table: Table) -> List[str]:
    columns = [] if table.is_pk_serial else [table.primary_key.column]
    columns.extend(f.column for f in table.value_fields)
    return columns


def insert_query(table: Table, returning: bool = False) -> str:
    columns = insert_columns(table)
    if columns:
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO {table.table_name} ({', '.join(columns)}) VALUES ({placeholders})"
    else:
        sql = f"INSERT INTO {table.table_name} DEFAULT VALUES"
    if returning and table.is_pk_serial:
        sql += f" RETURNING {table.primary_key.column}"
    return sql


def compare_fields(table: Table) -> List[Field]:
    """Value fields whose change makes an update effective (the token is excluded)"""
    token = getattr(table, "token_field", None)
    return [f for f in table.value_fields if f is not token]


def update_query(table: Table, null_safe_equal: str = "IS NOT DISTINCT FROM") -> str:
    """
    Update of one row by key, guarded so that an unchanged row is not
    touched: parameters are the value fields, the key, the expected token
    (root with a token only), then the compared fields again. An unchanged
    row, or a root whose token moved, reports zero affected rows.
    """
    pk = table.primary_key.column
    assignments = ", ".join(f"{f.column} = ?" for f in table.value_fields) or f"{pk} = {pk}"
    sql = f"UPDATE {table.table_name} SET {assignments} WHERE {pk} = ?"
    token = getattr(table, "token_field", None)
    if token is not None:
        sql += f" AND {token.column} = ?"
    compared = compare_fields(table)
    if compared:
        same = " AND ".join(f"{f.column} {null_safe_equal} ?" for f in compared)
        sql += f" AND NOT ({same})"
    return sql


def touch_query(entity: Entity) -> Optional[str]:
    """Token-only update of the root row at the expected token, None without a token field"""
    if entity.token_field is None:
        return None
    token = entity.token_field.column
    return (
        f"UPDATE {entity.table_name} SET {token} = ?"
        f" WHERE {entity.primary_key.column} = ? AND {token} = ?"
    )


def remove_query(table: Table) -> str:
    return f"DELETE FROM {table.table_name} WHERE {table.primary_key.column} = ?"


def delete_query(table: Table, path: TablePath = ()) -> str:
    """Delete every row of `table` under one root key"""
    if not path:
        return remove_query(table)
    if len(path) == 1:
        return f"DELETE FROM {table.table_name} WHERE {table.parent_key.column} = ?"

    ancestors = list(path[1:])
    sql = f"DELETE FROM {table.table_name} WHERE {table.parent_key.column} IN ("
    for anc in reversed(ancestors):
        sql += f"SELECT {anc.primary_key.column} FROM {anc.table_name} WHERE {anc.parent_key.column}"
        sql += " = ?" if anc is ancestors[0] else " IN ("
    return sql + ")" * len(ancestors)
