"""
Query engine: filtered, sorted, paginated reads of an entity's root table.

Criteria only address root-table columns; child tables are loaded per
record afterwards (unless the request is header-only).
"""

from typing import Any, List, Tuple
import logging

from sqlalchemy.engine import Connection

from models.table import Entity, Field
from persistence.convert import coerce, to_db
from persistence.fetch import populate_children, scan_row
from persistence.lifecycle import Statement
from schemas.query import QueryRequest, WhereCriteria, WhereOperation
from core.exceptions import QueryError

logger = logging.getLogger(__name__)

# (plain, excluded) operator per comparison
_OPERATORS = {
    WhereOperation.EQUAL: ("=", "<>"),
    WhereOperation.LESS: ("<", ">="),
    WhereOperation.GREATER: (">", "<="),
    WhereOperation.LIKE: ("LIKE", "NOT LIKE"),
}


def resolve_field(entity: Entity, name: str) -> Field:
    field = entity.field_by_name(name)
    if field is None:
        raise QueryError(
            f"Field name \"{name}\" not found in entity \"{entity.table_name}\"",
            context={"table_name": entity.table_name, "field_name": name}
        )
    return field


def _criteria_sql(entity: Entity, criteria: WhereCriteria) -> Tuple[str, Field, Any]:
    field = resolve_field(entity, criteria.field)

    if criteria.value is None:
        if criteria.operation != WhereOperation.EQUAL:
            raise QueryError(
                "Invalid where criteria: only equality can compare to NULL",
                context={"table_name": entity.table_name, "field_name": criteria.field}
            )
        negation = " NOT" if criteria.exclude else ""
        return f"({field.column} IS{negation} NULL)", field, None

    plain, excluded = _OPERATORS[criteria.operation]
    operator = excluded if criteria.exclude else plain
    value = criteria.value
    if criteria.operation != WhereOperation.LIKE:
        value = to_db(field, value)
    return f"({field.column} {operator} ?)", field, value


def build_where_clause(entity: Entity, where: List[List[WhereCriteria]]) -> Tuple[str, List[Field], List[Any]]:
    """
    Render a disjunction of conjunctions.

    Args:
        entity: Queried entity
        where: Groups of criteria; criteria within a group are ANDed and
            groups are ORed

    Returns:
        (sql, fields, params): the clause without the WHERE keyword, the
        field bound at each placeholder and the parameter values

    Raises:
        QueryError: If a field is unknown or NULL is used with a
            non-equality comparison
    """
    groups = []
    fields: List[Field] = []
    params: List[Any] = []

    for group in where:
        if not group:
            continue
        parts = []
        for criteria in group:
            clause, field, value = _criteria_sql(entity, criteria)
            parts.append(clause)
            if value is not None:
                fields.append(field)
                params.append(value)
        joined = " AND ".join(parts)
        groups.append(f"({joined})" if len(parts) > 1 else joined)

    return " OR ".join(groups), fields, params


def _compile(entity: Entity, request: QueryRequest, columns: str) -> Tuple[Statement, List[Any]]:
    query = f"{columns} FROM {entity.table_name}"
    where, fields, params = build_where_clause(entity, request.where_clause)
    if where:
        query += f" WHERE {where}"

    if request.sort:
        order = []
        for sort in request.sort:
            field = resolve_field(entity, sort.field)
            order.append(f"{field.column} {'ASC' if sort.ascending else 'DESC'}")
        query += f" ORDER BY {', '.join(order)}"

    if request.limit > 0:
        query += f" LIMIT {int(request.limit)}"
        if request.offset > 0:
            query += f" OFFSET {int(request.offset)}"

    return Statement(query, fields), params


def query_entities(conn: Connection, entity: Entity, request: QueryRequest) -> List[Any]:
    """
    Load every aggregate matching the request.

    Returns:
        New records, children populated unless the request is header-only
    """
    columns = "SELECT " + ", ".join(f.column for f in entity.fields)
    stmt, params = _compile(entity, request, columns)
    stmt.prepare(conn.dialect)
    logger.debug(f"Query {entity.table_name}: {stmt.sql}")

    records = []
    for row in stmt.execute(conn, params).all():
        record = entity.new_row()
        scan_row(entity, record, row)
        if not request.header_only:
            populate_children(conn, entity, record)
        records.append(record)
    return records


def query_ids(conn: Connection, entity: Entity, request: QueryRequest) -> List[Any]:
    """Primary keys of the matching root rows"""
    stmt, params = _compile(entity, request, f"SELECT {entity.primary_key.column}")
    stmt.prepare(conn.dialect)
    return [coerce(entity.primary_key, pk) for (pk,) in stmt.execute(conn, params)]
