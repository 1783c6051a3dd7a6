"""
Schema registry: builds and validates the Table tree of each record type
"""

from typing import Any, Dict, Iterator, Optional, Set, Union
from datetime import datetime
from decimal import Decimal
import dataclasses
import logging
import re

from models.base import DataType, INTEGER_TYPES, new_record
from models.table import ChildTable, Entity, Field, Table
from persistence.mapping import describe
from persistence.statements import select_fields
from schemas.descriptors import FieldDescriptor
from core.exceptions import NotRegisteredError, SchemaError

logger = logging.getLogger(__name__)

IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_NATIVE_TYPES = (
    (bool, DataType.BOOL),
    (int, DataType.INT64),
    (float, DataType.FLOAT),
    (Decimal, DataType.FLOAT),
    (str, DataType.STRING),
    (bytes, DataType.BLOB),
    (bytearray, DataType.BLOB),
    (datetime, DataType.DATETIME),
)


def scalar_data_type(native: Any) -> Optional[DataType]:
    """Column data type for a native Python type, None when unsupported"""
    if not isinstance(native, type):
        return None
    for python_type, data_type in _NATIVE_TYPES:
        # bool is an int subclass, the table lists it first
        if issubclass(native, python_type):
            return data_type
    return None


class SchemaRegistry:
    """
    Registry of persisted aggregate types.

    Responsibilities:
    - Turn record descriptors into a validated Table tree
    - Assign pre-order table numbers (root = 0)
    - Resolve entities by record type or by root table name

    A failed registration leaves the registry untouched.
    """

    def __init__(self):
        self._entities: Dict[type, Entity] = {}
        self._names: Dict[str, type] = {}
        self._table_names: Set[str] = set()

    def __contains__(self, cls: type) -> bool:
        return cls in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    def entities(self) -> Iterator[Entity]:
        return iter(list(self._entities.values()))

    def register(self, cls: type, table_name: str) -> Entity:
        """
        Register a record type as the root of an aggregate.

        Args:
            cls: Dataclass record type
            table_name: Root table name

        Returns:
            The Entity (root of the Table tree)

        Raises:
            SchemaError: If the type or its metadata is invalid, or the type
                or any of its table names is already registered
        """
        type_name = getattr(cls, "__name__", repr(cls))
        if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
            raise SchemaError(
                f"Invalid entity type: {type_name}. Dataclass expected",
                context={"type_name": type_name}
            )
        if cls in self._entities:
            raise SchemaError(f"Type {type_name} is already registered", context={"type_name": type_name})
        if table_name in self._names:
            raise SchemaError(f"Entity {table_name} is already registered", context={"table_name": table_name})

        entity = Entity(self._check_identifier(table_name, table_name), cls)
        self._extract(entity, cls, {cls})
        entity.check()

        tables = entity.flatten()
        for table in tables:
            for child in table.children:
                self._check_parent_key(table, child)
        names = [t.table_name for t in tables]
        for name in names:
            if names.count(name) > 1 or name in self._table_names:
                raise SchemaError(
                    f"Table name {name} is used more than once",
                    context={"type_name": type_name, "table_name": name}
                )

        for table_no, table in enumerate(tables):
            table.table_no = table_no
        entity.select_fields = select_fields(entity)

        self._entities[cls] = entity
        self._names[table_name] = cls
        self._table_names.update(names)

        logger.info(f"Registered {type_name} as {table_name} ({len(tables)} tables)")
        return entity

    def unregister(self, cls: type) -> Optional[Entity]:
        """Remove a registered type and free its table names"""
        entity = self._entities.pop(cls, None)
        if entity is not None:
            self._names.pop(entity.table_name, None)
            self._table_names.difference_update(t.table_name for t in entity.flatten())
            logger.info(f"Unregistered {cls.__name__}")
        return entity

    def lookup(self, cls: type) -> Optional[Entity]:

        return self._entities.get(cls)

    def lookup_by_name(self, table_name: str) -> Optional[type]:
        return self._names.get(table_name)

    def require(self, cls_or_record: Any) -> Entity:
        """Entity for a record type or record instance"""
        cls = cls_or_record if isinstance(cls_or_record, type) else type(cls_or_record)
        entity = self._entities.get(cls)
        if entity is None:
            raise NotRegisteredError(
                f"Unsupported entity {cls.__name__}",
                context={"type_name": cls.__name__}
            )
        return entity

    def new_instance(self, cls_or_name: Union[type, str]) -> Any:
        """Create an empty record of a registered type, by type or root table name"""
        if isinstance(cls_or_name, str):
            if not cls_or_name:
                raise NotRegisteredError("Empty entity name")
            cls = self._names.get(cls_or_name)
            if cls is None:
                raise NotRegisteredError(
                    f"Entity {cls_or_name} is not registered",
                    context={"table_name": cls_or_name}
                )
            cls_or_name = cls
        return new_record(self.require(cls_or_name).row_class)

    # ------------------------------------------------------------------
    # Tree construction
    # ------------------------------------------------------------------

    @staticmethod
    def _check_identifier(name: Optional[str], table_name: str) -> str:
        if not name or not IDENTIFIER.match(name):
            raise SchemaError(
                f"Invalid SQL identifier: {name!r}",
                context={"table_name": table_name}
            )
        return name

    @staticmethod
    def _check_parent_key(parent: Table, child: ChildTable) -> None:
        parent_int = parent.primary_key.data_type in INTEGER_TYPES
        child_int = child.parent_key.data_type in INTEGER_TYPES
        if parent_int != child_int or (not parent_int and child.parent_key.data_type != DataType.STRING):
            raise SchemaError(
                f"Parent key {child.parent_key.column} does not match the key of {parent.table_name}",
                context={"table_name": child.table_name, "field_name": child.parent_key.name}
            )

    def _extract(self, table: Table, cls: type, lineage: Set[type]) -> None:
        for desc in describe(cls):
            if desc.is_association:
                table.children.append(self._extract_child(table, desc, lineage))
            else:
                self._extract_field(table, desc)

    def _extract_child(self, table: Table, desc: FieldDescriptor, lineage: Set[type]) -> ChildTable:
        context = {"table_name": table.table_name, "field_name": desc.name}
        if desc.nested_type is None or desc.cardinality is None:
            raise SchemaError(f"Unsupported association type for field {desc.name}", context=context)
        if len(desc.path) > 1:
            raise SchemaError(
                f"Association {desc.name} must be declared on the record itself, not on an embedded record",
                context=context
            )
        if not dataclasses.is_dataclass(desc.nested_type):
            raise SchemaError(f"Association {desc.name} must hold dataclass records", context=context)
        if desc.nested_type in lineage:
            raise SchemaError(f"Recursive association {desc.name}", context=context)

        child = ChildTable(
            self._check_identifier(desc.table_name, table.table_name),
            desc.nested_type,
            desc.name,
            desc.cardinality,
        )
        self._extract(child, desc.nested_type, lineage | {desc.nested_type})
        child.resolve_serial()
        return child

    def _extract_field(self, table: Table, desc: FieldDescriptor) -> None:
        context = {"table_name": table.table_name, "field_name": desc.name}
        natural = scalar_data_type(desc.native_type)
        if natural is None:
            raise SchemaError(
                f"Unsupported field type {desc.native_type!r} for {desc.name}",
                context=context
            )
        data_type = natural
        if desc.data_type is not None and desc.data_type != natural:
            if not (natural in INTEGER_TYPES and desc.data_type in INTEGER_TYPES):
                raise SchemaError(
                    f"Field {desc.name} cannot be stored as {desc.data_type.value}",
                    context=context
                )
            data_type = desc.data_type

        field = Field(
            name=desc.name,
            column=self._check_identifier(desc.column, table.table_name),
            data_type=data_type,
            nullable=desc.nullable,
            precision=desc.precision,
            is_index=desc.index,
            is_required=desc.required,
            path=desc.path,
            path_types=desc.path_types,
        )

        if desc.primary_key:
            table.set_primary_key(field)
        if desc.foreign_key:
            if not isinstance(table, ChildTable):
                raise SchemaError("Parent key declared on an entity root", context=context)
            table.set_parent_key(field)
        if desc.token:
            if not isinstance(table, Entity):
                raise SchemaError("Token field declared on a child table", context=context)
            table.set_token_field(field)

        for existing in table.fields:
            if existing.column == field.column:
                raise SchemaError(f"Duplicate column {field.column}", context=context)
        table.add_field(field)
