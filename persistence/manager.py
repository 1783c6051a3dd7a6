# ============================================================================
# File: persistence/manager.py
# Description: Entity manager facade over registry, statements and engine
# ============================================================================
"""
Entity Manager - the application-facing entry point of the aggregate store.

Ties a SchemaRegistry to an SQLAlchemy engine:
- Binds every registered Table tree to the engine's dialect
- Runs reads on a plain connection
- Runs every write inside one transaction (engine.begin()), so a failure at
  any step rolls the whole aggregate back
"""

from typing import Any, Dict, List, Optional, Union
import logging

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from models.table import Entity
from persistence.clone import clone_entity
from persistence.fetch import fetch_entity
from persistence.lifecycle import bind_entity, dump_queries, release_entity
from persistence.query import query_entities, query_ids
from persistence.registry import SchemaRegistry
from persistence.store import delete_entity, save_entity
from schemas.query import QueryRequest
from schemas.report import SaveReport
from core.exceptions import NotBoundError, PersistenceException

logger = logging.getLogger(__name__)


class EntityManager:
    """
    Facade over the persistence engine

    Responsibilities:
    - Resolve the Entity of a record or record type
    - Own the engine binding of every registered aggregate
    - Delimit connections and transactions per operation
    """

    def __init__(self, registry: Optional[SchemaRegistry] = None, engine: Optional[Engine] = None):
        self.registry = registry if registry is not None else SchemaRegistry()
        self.engine: Optional[Engine] = None
        if engine is not None:
            self.bind(engine)

    @property
    def is_bound(self) -> bool:
        return self.engine is not None

    def register(self, cls: type, table_name: str) -> Entity:
        """
        Register a record type, binding it right away when an engine is set.

        A bind failure rolls the registration back.
        """
        entity = self.registry.register(cls, table_name)
        if self.engine is not None:
            try:
                bind_entity(entity, self.engine.dialect)
            except SQLAlchemyError:
                logger.error(f"Binding {table_name} to {self.engine.dialect.name} failed, unregistering")
                self.registry.unregister(cls)
                raise
        return entity

    def bind(self, engine: Engine) -> None:
        """
        Prepare the statements of every registered aggregate for an engine.

        A failed bind leaves the manager unbound.

        Raises:
            sqlalchemy.exc.SQLAlchemyError: If a statement cannot be compiled
        """
        try:
            for entity in self.registry.entities():
                bind_entity(entity, engine.dialect)
        except SQLAlchemyError:
            logger.error(f"Binding to {engine.dialect.name} failed, releasing all statements")
            self.release()
            raise

        self.engine = engine
        logger.info(f"Bound {len(self.registry)} entities to {engine.dialect.name}")

    def release(self) -> None:
        for entity in self.registry.entities():
            release_entity(entity)
        self.engine = None

    def _require_engine(self) -> Engine:
        if self.engine is None:
            raise NotBoundError("Database connection is not set")
        return self.engine

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, record: Any, pk: Any) -> Any:
        """
        Load the aggregate stored under `pk` into `record` (in place).

        Raises:
            NotRegisteredError: If the record type is not registered
            sqlalchemy.exc.NoResultFound: If no root row exists for the key
        """
        entity = self.registry.require(record)
        with self._require_engine().connect() as conn:
            return fetch_entity(conn, entity, record, pk)

    def load(self, cls_or_name: Union[type, str], pk: Any) -> Any:
        """Load an aggregate into a new record of a type or entity name"""
        return self.get(self.registry.new_instance(cls_or_name), pk)

    def query(self, cls: type, request: Optional[QueryRequest] = None) -> List[Any]:
        entity = self.registry.require(cls)
        with self._require_engine().connect() as conn:
            return query_entities(conn, entity, request or QueryRequest())

    def query_ids(self, cls: type, request: Optional[QueryRequest] = None) -> List[Any]:
        entity = self.registry.require(cls)
        with self._require_engine().connect() as conn:
            return query_ids(conn, entity, request or QueryRequest())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def put(self, record: Any) -> SaveReport:
        """
        Save an aggregate in one transaction.

        Returns:
            SaveReport of the save

        Raises:
            ConflictError: If the record carries a stale token
            ConsistencyError: If a statement affected more rows than expected
            sqlalchemy.exc.SQLAlchemyError: Driver failures, unchanged
        """
        entity = self.registry.require(record)
        engine = self._require_engine()
        try:
            with engine.begin() as conn:
                return save_entity(conn, entity, record)
        except (PersistenceException, SQLAlchemyError) as e:
            logger.error(f"Save of {entity.table_name} rolled back: {e}")
            raise

    def delete(self, cls_or_record: Any, pk: Any = None) -> int:
        """
        Delete an aggregate and all of its child rows in one transaction.

        Args:
            cls_or_record: Record type, or a record whose key is used when
                `pk` is omitted
            pk: Root primary key

        Returns:
            Total number of rows removed
        """
        entity = self.registry.require(cls_or_record)
        if pk is None and not isinstance(cls_or_record, type):
            pk = entity.key_of(cls_or_record)
        engine = self._require_engine()
        try:
            with engine.begin() as conn:
                return delete_entity(conn, entity, pk)
        except (PersistenceException, SQLAlchemyError) as e:
            logger.error(f"Delete of {entity.table_name} {pk} rolled back: {e}")
            raise

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def new_instance(self, cls_or_name: Union[type, str]) -> Any:
        return self.registry.new_instance(cls_or_name)

    def clone(self, record: Any) -> Any:
        if record is None:
            return None
        return clone_entity(self.registry.require(record), record)

    def dump_queries(self, cls: type) -> Dict[str, Dict[str, str]]:
        """Log and return the statements of every table of an aggregate"""
        entity = self.registry.require(cls)
        dump = dump_queries(entity)
        for table_name, queries in dump.items():
            for kind, query in queries.items():
                logger.info(f"[{table_name}] {kind}: {query}")
        return dump
