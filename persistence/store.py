"""
Persistence engine: save an aggregate by reconciling the record graph
against the rows already stored, and cascade-delete an aggregate.

Save outline:
1. Snapshot the (table number, key) pairs stored under the root key and
   the stored optimistic token (info queries)
2. Reject a stale token before anything is written; the root update and
   the token touch also match on the expected token, so a writer that
   committed after the snapshot is detected at write time
3. Walk the record graph: rows found in the snapshot are updated, the
   others are inserted (generated keys are written back into the record)
4. Remove every snapshot row the graph no longer holds, deepest tables first

Callers run both operations inside one transaction; any exception leaves the
database unchanged once that transaction rolls back.
"""

from bisect import bisect_left
from typing import Any, Dict, List, Tuple
import enum
import logging

from sqlalchemy.engine import Connection
from sqlalchemy.exc import NoResultFound

from models.table import ChildTable, Entity, Table
from models.base import Cardinality
from persistence.convert import coerce, is_new_key, primary_key_value, to_db
from persistence.lifecycle import statements_of
from persistence.statements import compare_fields
from schemas.report import SaveReport
from core.exceptions import ConflictError, ConsistencyError

logger = logging.getLogger(__name__)


class RowStatus(int, enum.Enum):
    READ = 0
    INSERTED = 1
    UPDATED = 2
    SKIPPED = 3
    DELETED = 4


class RowSnapshot:
    """
    Sorted set of the rows stored under one root key.

    Entries are ordered by (table number, primary key) and looked up by
    binary search. Rows are only ever compared within one table, so keys of
    different types never meet.
    """

    def __init__(self, rows: List[Tuple[int, Any]] = None, token: int = 0):
        self.rows: List[Tuple[int, Any]] = sorted(rows or [])
        self.status: List[RowStatus] = [RowStatus.READ] * len(self.rows)
        self.token = token
        self.inserted = 0
        self.updated = 0
        self.skipped = 0
        self.deleted = 0
        self.missed = 0

    def __len__(self) -> int:
        return len(self.rows)

    @classmethod
    def load(cls, conn: Connection, entity: Entity, pk: Any) -> "RowSnapshot":
        """
        Read the keys of every stored row of the aggregate.

        Raises:
            sqlalchemy.exc.NoResultFound: If the root row does not exist
        """
        root = statements_of(entity).info.execute(conn, [pk]).one()
        rows = [(entity.table_no, pk)]
        for child in entity.flatten_children():
            for (child_key,) in statements_of(child).info.execute(conn, [pk]):
                rows.append((child.table_no, coerce(child.primary_key, child_key)))
        return cls(rows, token=int(root[1] or 0))

    def find(self, table_no: int, pk: Any) -> int:
        """Index of the row, -1 when absent"""
        idx = bisect_left(self.rows, (table_no, pk))
        if idx < len(self.rows) and self.rows[idx] == (table_no, pk):
            return idx
        return -1

    def has_row(self, table_no: int, pk: Any) -> bool:
        return self.find(table_no, pk) >= 0

    def mark(self, table_no: int, pk: Any, status: RowStatus) -> None:
        if status == RowStatus.INSERTED:
            self.inserted += 1
        elif status == RowStatus.UPDATED:
            self.updated += 1
        elif status == RowStatus.SKIPPED:
            self.skipped += 1
        elif status == RowStatus.DELETED:
            self.deleted += 1

        idx = self.find(table_no, pk)
        if idx >= 0:
            self.status[idx] = status
        elif status != RowStatus.INSERTED:
            self.missed += 1

    def unvisited(self) -> List[Tuple[int, Any]]:
        """Rows the record graph no longer holds, deepest tables first"""
        rows = [r for r, s in zip(self.rows, self.status) if s == RowStatus.READ]
        return sorted(rows, key=lambda r: r[0], reverse=True)

    @property
    def changed(self) -> bool:
        return bool(self.inserted or self.updated or self.deleted)

    def report(self, pk: Any) -> SaveReport:
        return SaveReport(
            primary_key=pk,
            inserted=self.inserted,
            updated=self.updated,
            skipped=self.skipped,
            deleted=self.deleted,
        )


def _check_rowcount(table: Table, operation: str, rowcount: int) -> None:
    if rowcount is not None and rowcount > 1:
        raise ConsistencyError(
            f"{operation} on {table.table_name} affected {rowcount} rows, expected at most 1",
            context={"table_name": table.table_name, "operation": operation, "rows_affected": rowcount}
        )


def _conflict(entity: Entity, pk: Any, stored: Any, current: int) -> ConflictError:
    return ConflictError(
        f"Stale token for {entity.table_name} {pk}",
        context={
            "table_name": entity.table_name,
            "primary_key": pk,
            "expected_token": stored,
            "actual_token": current,
        }
    )


def _check_token(conn: Connection, entity: Entity, pk: Any, expected: int) -> None:
    """Raise ConflictError when the stored token is no longer `expected`"""
    row = statements_of(entity).info.execute(conn, [pk]).one_or_none()
    stored = int(row[1] or 0) if row is not None else None
    if stored != expected:
        logger.warning(f"Token of {entity.table_name} {pk} moved from {expected} to {stored} during save")
        raise _conflict(entity, pk, stored, expected)


def _row_params(table: Table, record: Any, token: int = None) -> Dict[int, Any]:
    """Outbound value per field id, with the token replaced when given"""
    token_field = getattr(table, "token_field", None)
    values = {}
    for field in table.fields:
        if token is not None and field is token_field:
            values[id(field)] = token
        else:
            values[id(field)] = to_db(field, field.get_value(record))
    return values


def store_row(
    conn: Connection,
    table: Table,
    record: Any,
    snapshot: RowSnapshot,
    token: int = None,
    expected_token: int = None,
) -> Any:
    """
    Insert or update one row, then recurse into its child associations.

    `token` is the value written to the token column and `expected_token`
    the value the stored root row must still hold (root only).

    Returns:
        The resolved primary key of the row
    """
    stmts = statements_of(table)
    pk = primary_key_value(table.key_of(record))
    values = _row_params(table, record, token)

    if not is_new_key(pk) and snapshot.has_row(table.table_no, pk):
        compared = compare_fields(table)
        if compared:
            params = [values[id(f)] for f in table.value_fields] + [pk]
            if getattr(table, "token_field", None) is not None:
                params.append(expected_token or 0)
            params += [values[id(f)] for f in compared]
            rowcount = stmts.update.execute(conn, params).rowcount
            _check_rowcount(table, "UPDATE", rowcount)
            if rowcount == 0 and expected_token is not None:
                # Unchanged row, or another writer moved the token
                _check_token(conn, table, pk, expected_token)
        else:
            rowcount = 0

        if rowcount == 0:
            snapshot.mark(table.table_no, pk, RowStatus.SKIPPED)
        else:
            snapshot.mark(table.table_no, pk, RowStatus.UPDATED)
    else:
        params = [values[id(f)] for f in table.value_fields]
        if not table.is_pk_serial:
            if is_new_key(pk) and table.primary_key is not getattr(table, "parent_key", None):
                logger.warning(f"Inserting {table.table_name} row with an empty key")
            params.insert(0, pk)

        result = stmts.insert.execute(conn, params)
        if table.is_pk_serial:
            if result.returns_rows:
                pk = result.scalar_one()
            else:
                _check_rowcount(table, "INSERT", result.rowcount)
                pk = result.lastrowid
            table.primary_key.set_value(record, coerce(table.primary_key, pk))
            pk = table.key_of(record)
        else:
            _check_rowcount(table, "INSERT", result.rowcount)
        snapshot.mark(table.table_no, pk, RowStatus.INSERTED)

    for child in table.children:
        store_children(conn, child, record, pk, snapshot)

    return pk


def store_children(conn: Connection, child: ChildTable, parent: Any, parent_key: Any, snapshot: RowSnapshot) -> None:
    """Store every row of one association, whatever its cardinality"""
    rows = list(child.iter_rows(parent))
    for row in rows:
        child.parent_key.set_value(row, parent_key)
        store_row(conn, child, row, snapshot)

    if child.cardinality == Cardinality.KEYED_MANY and rows:
        # Keys generated by the inserts replace the placeholder keys
        child.set_container(parent, {child.key_of(row): row for row in rows})


def remove_unvisited(conn: Connection, entity: Entity, snapshot: RowSnapshot) -> None:
    """Delete the stored rows the record graph dropped, table by table"""
    tables = entity.tables_by_no()
    for table_no, pk in snapshot.unvisited():
        if table_no == entity.table_no:
            continue
        table = tables[table_no]
        rowcount = statements_of(table).remove.execute(conn, [pk]).rowcount
        _check_rowcount(table, "REMOVE", rowcount)
        if rowcount == 0:
            logger.warning(f"Row {pk} of {table.table_name} was already removed")
            snapshot.mark(table_no, pk, RowStatus.SKIPPED)
        else:
            snapshot.mark(table_no, pk, RowStatus.DELETED)


def save_entity(conn: Connection, entity: Entity, record: Any) -> SaveReport:
    """
    Save an aggregate.

    Args:
        conn: Connection with an open transaction
        entity: Registered entity of the record type
        record: Root record of the aggregate

    Returns:
        SaveReport with the resolved root key and per-outcome row counts

    Raises:
        ConflictError: If the record's token differs from the stored token
        ConsistencyError: If a statement affected more than one row
        ConversionError: If a key has an unsupported type
        sqlalchemy.exc.NoResultFound: If a generated root key is not stored
    """
    hook = getattr(record, "on_entity_save", None)
    if callable(hook) and hook() is False:
        logger.info(f"Save of {entity.table_name} cancelled by the record")
        return SaveReport(primary_key=entity.key_of(record), saved=False)

    pk = primary_key_value(entity.key_of(record))
    snapshot = RowSnapshot()
    if not is_new_key(pk):
        try:
            snapshot = RowSnapshot.load(conn, entity, pk)
        except NoResultFound:
            if entity.is_pk_serial:
                raise
            logger.debug(f"No stored {entity.table_name} row for {pk}, inserting")

    new_token = None
    if entity.token_field is not None:
        current = entity.token_field.get_value(record) or 0
        if len(snapshot) and current != snapshot.token:
            raise _conflict(entity, pk, snapshot.token, current)
        new_token = current + 1

    expected_token = current if new_token is not None and len(snapshot) else None
    pk = store_row(conn, entity, record, snapshot, token=new_token, expected_token=expected_token)
    remove_unvisited(conn, entity, snapshot)

    if new_token is not None:
        idx = snapshot.find(entity.table_no, pk)
        root_written = idx < 0 or snapshot.status[idx] != RowStatus.SKIPPED
        if not root_written and snapshot.changed:
            # Only child rows changed: the token still has to move
            rowcount = statements_of(entity).touch.execute(conn, [new_token, pk, current]).rowcount
            _check_rowcount(entity, "UPDATE", rowcount)
            if rowcount == 0:
                _check_token(conn, entity, pk, current)
            root_written = rowcount == 1
        if root_written:
            entity.token_field.set_value(record, new_token)

    report = snapshot.report(pk)
    logger.info(
        f"Saved {entity.table_name} {pk}: {report.inserted} inserted, {report.updated} updated, "
        f"{report.skipped} skipped, {report.deleted} deleted"
    )
    return report


def delete_entity(conn: Connection, entity: Entity, pk: Any) -> int:
    """
    Delete an aggregate: every child table (deepest first), then the root.

    Returns:
        Total number of rows removed
    """
    pk = primary_key_value(pk)
    total = 0
    for child in reversed(entity.flatten_children()):
        rowcount = statements_of(child).delete.execute(conn, [pk]).rowcount
        logger.debug(f"Deleted {rowcount} rows from {child.table_name}")
        total += max(rowcount or 0, 0)

    rowcount = statements_of(entity).delete.execute(conn, [pk]).rowcount
    _check_rowcount(entity, "DELETE", rowcount)
    total += max(rowcount or 0, 0)

    logger.info(f"Deleted {entity.table_name} {pk} ({total} rows)")
    return total
