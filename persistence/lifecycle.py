"""
Statement lifecycle: compile, prepare and release the statement sets of a
Table tree against an engine's dialect.

Binding is all-or-nothing across the whole tree: every table's set is
prepared first, and only when all of them succeeded are the new sets swapped
in (the previous sets are released after the swap). A failure leaves every
table with the set it had before the call.

Rebinding must not run concurrently with reads or writes on the same tree.
"""

from dataclasses import dataclass, fields as dataclass_fields
from typing import Any, Dict, Iterable, List, Optional, Sequence
import itertools
import logging
import re

from sqlalchemy import bindparam, literal_column, text
from sqlalchemy.engine import Connection, CursorResult, Dialect

from models.ddl import column_type
from models.table import Entity, Field, Table
from persistence import statements as sql
from core.config import settings
from core.exceptions import NotBoundError

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\?")


class Statement:
    """
    One compiled statement with positional parameters.

    The SQL uses ``?`` placeholders; preparing rewrites them to named binds
    ``:p0 .. :pN`` typed after the Field bound at each position.
    """

    def __init__(self, query: str, param_fields: Sequence[Optional[Field]] = ()):
        self.sql = query
        self.param_fields = list(param_fields)
        self.clause = None

    def __repr__(self) -> str:
        return f"Statement({self.sql!r})"

    @property
    def is_prepared(self) -> bool:
        return self.clause is not None

    def prepare(self, dialect: Dialect) -> None:
        counter = itertools.count()
        named = _PLACEHOLDER.sub(lambda _: f":p{next(counter)}", self.sql)
        count = next(counter)

        binds = []
        for i in range(count):
            field = self.param_fields[i] if i < len(self.param_fields) else None
            if field is None:
                binds.append(bindparam(f"p{i}"))
            else:
                binds.append(bindparam(f"p{i}", type_=column_type(field)))

        clause = text(named).bindparams(*binds)
        # Compiling surfaces malformed statements at bind time
        clause.compile(dialect=dialect)
        self.clause = clause

    def execute(self, conn: Connection, params: Iterable[Any] = ()) -> CursorResult:
        return conn.execute(self.clause, {f"p{i}": v for i, v in enumerate(params)})

    def release(self) -> None:
        self.clause = None


@dataclass
class TableStatements:
    """Bound statement set of one Table"""
    info: Statement
    select: Statement
    insert: Statement
    update: Statement
    remove: Statement
    delete: Statement
    touch: Optional[Statement] = None

    def all(self) -> List[Statement]:
        stmts = (getattr(self, f.name) for f in dataclass_fields(self))
        return [s for s in stmts if s is not None]

    def prepare(self, dialect: Dialect) -> None:
        """Prepare every statement, releasing this set on the first failure"""
        for name in (f.name for f in dataclass_fields(self)):
            stmt = getattr(self, name)
            if stmt is None:
                continue
            try:
                stmt.prepare(dialect)
            except Exception:
                logger.error(f"Invalid {name} query: {stmt.sql}")
                self.release()
                raise

    def release(self) -> None:
        for stmt in self.all():
            stmt.release()


def null_safe_equal(dialect: Dialect) -> str:
    """Null-safe equality operator of a dialect ("IS" on SQLite, "<=>" on MySQL)"""
    expr = literal_column("a").is_not_distinct_from(literal_column("b"))
    compiled = str(expr.compile(dialect=dialect))
    return compiled[len("a "):-len(" b")]


def build_statements(
    entity: Entity,
    table: Table,
    path: List[Table],
    returning: bool = False,
    equal: str = "IS NOT DISTINCT FROM",
) -> TableStatements:
    """Compile (without preparing) the statement set of one table"""
    root_key = entity.primary_key
    pk = table.primary_key
    insert_params = ([] if table.is_pk_serial else [pk]) + table.value_fields
    token = entity.token_field if table is entity else None
    update_params = table.value_fields + [pk] + ([token] if token is not None else []) + sql.compare_fields(table)

    touch = None
    if token is not None:
        touch = Statement(sql.touch_query(entity), [token, pk, token])

    return TableStatements(
        info=Statement(sql.info_query(table, path), [root_key]),
        select=Statement(sql.select_query(table, path), [table.parent_key if path else pk]),
        insert=Statement(sql.insert_query(table, returning), insert_params),
        update=Statement(sql.update_query(table, equal), update_params),
        remove=Statement(sql.remove_query(table), [pk]),
        delete=Statement(sql.delete_query(table, path), [root_key]),
        touch=touch,
    )


def bind_entity(entity: Entity, dialect: Dialect) -> None:
    """
    Prepare the statement sets of every table of an aggregate.

    Raises:
        sqlalchemy.exc.SQLAlchemyError: If any statement fails to compile;
            no table's bound set is changed in that case
    """
    returning = bool(getattr(dialect, "insert_returning", False))
    equal = null_safe_equal(dialect)
    prepared: List[tuple] = []

    try:
        for table, path in sql.walk(entity):
            stmts = build_statements(entity, table, path, returning, equal)
            stmts.prepare(dialect)
            prepared.append((table, stmts))
    except Exception:
        logger.error(f"Binding {entity.table_name} failed, keeping previous statements")
        for _, stmts in prepared:
            stmts.release()
        raise

    for table, stmts in prepared:
        previous = table.statements
        table.statements = stmts
        if previous is not None:
            previous.release()
        if settings.LOG_STATEMENTS:
            for stmt in stmts.all():
                logger.info(f"[{table.table_name}] {stmt.sql}")

    logger.debug(f"Bound {len(prepared)} tables of {entity.table_name} to {dialect.name}")


def statements_of(table: Table) -> TableStatements:
    """Bound statement set of a table, NotBoundError when there is none"""
    if table.statements is None:
        raise NotBoundError(
            f"Table {table.table_name} has no bound statements",
            context={"table_name": table.table_name}
        )
    return table.statements


def release_entity(entity: Entity) -> None:
    for table in entity.flatten():
        if table.statements is not None:
            table.statements.release()
            table.statements = None


def dump_queries(entity: Entity) -> Dict[str, Dict[str, str]]:
    """SQL of every statement kind, per table name"""
    dump = {}
    for table, path in sql.walk(entity):
        stmts = build_statements(entity, table, path)
        dump[table.table_name] = {
            f.name: getattr(stmts, f.name).sql
            for f in dataclass_fields(stmts)
            if getattr(stmts, f.name) is not None
        }
    return dump
