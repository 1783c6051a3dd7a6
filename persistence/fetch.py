"""
Fetch engine: load an aggregate (root row plus every nested child row)
into a record graph.
"""

from typing import Any, Sequence
import logging

from sqlalchemy.engine import Connection

from models.table import Entity, Table
from persistence.convert import coerce, primary_key_value
from persistence.lifecycle import statements_of

logger = logging.getLogger(__name__)


def scan_row(table: Table, record: Any, row: Sequence[Any]) -> None:
    """Coerce one result row into the record, column by column"""
    for field, value in zip(table.fields, row):
        field.set_value(record, coerce(field, value))


def populate_children(conn: Connection, table: Table, record: Any) -> None:
    """
    Replace every child container of the record with the stored rows.

    Containers are always rebuilt from scratch: an ordered collection holds
    rows in key order, a keyed collection maps child key to row, and a
    single association holds the row or None.
    """
    key = table.key_of(record)
    for child in table.children:
        container = child.new_container()
        for row in statements_of(child).select.execute(conn, [key]):
            item = child.new_row()
            scan_row(child, item, row)
            populate_children(conn, child, item)
            container = child.add_row(container, item)
        child.set_container(record, container)


def fetch_entity(conn: Connection, entity: Entity, record: Any, pk: Any) -> Any:
    """
    Load the aggregate stored under `pk` into `record`.

    Args:
        conn: Open connection
        entity: Registered entity of the record type
        record: Record to populate in place
        pk: Root primary key

    Returns:
        The populated record

    Raises:
        sqlalchemy.exc.NoResultFound: If no root row exists for the key
        ConversionError: If a stored value does not fit its field
    """
    pk = primary_key_value(pk)
    row = statements_of(entity).select.execute(conn, [pk]).one()
    scan_row(entity, record, row)
    populate_children(conn, entity, record)
    logger.debug(f"Fetched {entity.table_name} {pk}")
    return record
