"""
Table tree describing how an aggregate maps onto relational tables.

Design:
- A Table owns its Fields in declaration order (that order is the column
  order of every generated statement and is never changed)
- An Entity is the root of one tree; every other node is a ChildTable
  linked to its parent through a parent-key Field
- Table numbers come from a pre-order walk (root = 0) and only serve to
  order rows during reconciliation
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple
from models.base import Cardinality, DataType, INTEGER_TYPES, new_record
from core.exceptions import SchemaError
from datetime import datetime


_ZERO_VALUES = {
    DataType.BOOL: False,
    DataType.INT32: 0,
    DataType.INT64: 0,
    DataType.FLOAT: 0.0,
    DataType.STRING: "",
    DataType.BLOB: b"",
}

EPOCH = datetime(1970, 1, 1)


@dataclass(eq=False)
class Field:
    """One mapped scalar column"""
    name: str
    column: str
    data_type: DataType
    nullable: bool = False
    precision: int = 0
    is_index: bool = False
    is_required: bool = False
    path: Tuple[str, ...] = ()
    path_types: Tuple[type, ...] = ()

    def get_value(self, record: Any) -> Any:
        value = record
        for attr in self.path:
            if value is None:
                return None
            value = getattr(value, attr)
        return value

    def set_value(self, record: Any, value: Any) -> None:
        target = record
        for attr, embedded_type in zip(self.path[:-1], self.path_types):
            nested = getattr(target, attr, None)
            if nested is None:
                nested = new_record(embedded_type)
                setattr(target, attr, nested)
            target = nested
        setattr(target, self.path[-1], value)

    def zero_value(self) -> Any:
        if self.data_type == DataType.DATETIME:
            return EPOCH
        return _ZERO_VALUES[self.data_type]

    def __repr__(self) -> str:
        return f"Field({self.name!r} -> {self.column} {self.data_type.value})"


class Table:
    """One relational table and its place in the aggregate tree"""

    def __init__(self, table_name: str, row_class: type):
        self.table_name = table_name
        self.row_class = row_class
        self.fields: List[Field] = []
        self.primary_key: Optional[Field] = None
        self.children: List["ChildTable"] = []
        self.table_no = -1
        self.is_pk_serial = False
        # Bound statement set, owned by the lifecycle manager
        self.statements = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.table_name!r}, no={self.table_no})"

    def add_field(self, field: Field) -> None:
        self.fields.append(field)

    def set_primary_key(self, field: Field) -> None:
        if self.primary_key is not None:
            raise SchemaError(
                "Duplicate primary key definition",
                context={"table_name": self.table_name, "field_name": field.name}
            )
        if field.data_type in INTEGER_TYPES:
            self.is_pk_serial = True
        elif field.data_type != DataType.STRING:
            raise SchemaError(
                f"Column \"{field.column}\" in table \"{self.table_name}\" cannot be a primary key",
                context={"table_name": self.table_name, "data_type": field.data_type.value}
            )
        self.primary_key = field

    @property
    def value_fields(self) -> List[Field]:
        """All fields except the primary key, in declaration order"""
        return [f for f in self.fields if f is not self.primary_key]

    def key_of(self, record: Any) -> Any:
        return self.primary_key.get_value(record)

    def field_by_name(self, name: str) -> Optional[Field]:
        """Resolve a field by attribute name or column name"""
        for f in self.fields:
            if f.name == name or f.column == name:
                return f
        return None

    def new_row(self) -> Any:
        return new_record(self.row_class)

    def flatten(self) -> List["Table"]:
        """Pre-order list of this table and all descendants"""
        tables: List[Table] = [self]
        for child in self.children:
            tables.extend(child.flatten())
        return tables

    def check(self) -> None:
        """Validate the subtree rooted here"""
        context = {"table_name": self.table_name, "type_name": self.row_class.__name__}
        if not self.fields:
            raise SchemaError(f"No fields are found in {self.row_class.__name__}", context=context)
        if self.primary_key is None:
            raise SchemaError(f"Table \"{self.table_name}\" has no primary key", context=context)
        for child in self.children:
            if child.parent_key is None:
                raise SchemaError(
                    f"Table \"{child.table_name}\" has no parent key",
                    context={"table_name": child.table_name, "type_name": child.row_class.__name__}
                )
            child.check()


class ChildTable(Table):
    """A table owned by its parent through a parent (foreign) key"""

    def __init__(self, table_name: str, row_class: type, attribute: str, cardinality: Cardinality):
        super().__init__(table_name, row_class)
        self.attribute = attribute
        self.cardinality = cardinality
        self.parent_key: Optional[Field] = None

    def set_parent_key(self, field: Field) -> None:
        if self.parent_key is not None:
            raise SchemaError(
                "Duplicate parent key definition",
                context={"table_name": self.table_name, "field_name": field.name}
            )
        self.parent_key = field

    def resolve_serial(self) -> None:
        # A key shared with the parent is assigned by the relationship
        if self.primary_key is not None and self.primary_key is self.parent_key:
            self.is_pk_serial = False

    def get_container(self, parent: Any) -> Any:
        return getattr(parent, self.attribute, None)

    def set_container(self, parent: Any, container: Any) -> None:
        setattr(parent, self.attribute, container)

    def new_container(self) -> Any:
        if self.cardinality == Cardinality.ORDERED_MANY:
            return []
        if self.cardinality == Cardinality.KEYED_MANY:
            return {}
        return None

    def add_row(self, container: Any, row: Any) -> Any:
        """Place a row into the container, returning the (possibly new) container"""
        if self.cardinality == Cardinality.ORDERED_MANY:
            container.append(row)
            return container
        if self.cardinality == Cardinality.KEYED_MANY:
            container[self.key_of(row)] = row
            return container
        return row

    def iter_rows(self, parent: Any) -> Iterator[Any]:
        """Yield every child record held by the parent, whatever the cardinality"""
        container = self.get_container(parent)
        if container is None:
            return
        if self.cardinality == Cardinality.SINGLE:
            yield container
        elif self.cardinality == Cardinality.KEYED_MANY:
            for row in container.values():
                if row is not None:
                    yield row
        else:
            for row in container:
                if row is not None:
                    yield row

    def lookup(self, parent: Any, key: Any) -> Optional[Any]:
        """Find a child record of the parent by its primary key"""
        container = self.get_container(parent)
        if container is None:
            return None
        if self.cardinality == Cardinality.KEYED_MANY:
            return container.get(key)
        for row in self.iter_rows(parent):
            if self.key_of(row) == key:
                return row
        return None


class Entity(Table):
    """Root table of a persisted aggregate"""

    def __init__(self, table_name: str, row_class: type):
        super().__init__(table_name, row_class)
        self.token_field: Optional[Field] = None
        self.select_fields = ""
        self.table_no = 0

    def set_token_field(self, field: Field) -> None:
        if self.token_field is not None:
            raise SchemaError(
                "Duplicate token field definition",
                context={"table_name": self.table_name, "field_name": field.name}
            )
        if field.data_type not in INTEGER_TYPES:
            raise SchemaError(
                f"Token field \"{field.name}\" must be an integer",
                context={"table_name": self.table_name, "data_type": field.data_type.value}
            )
        self.token_field = field

    def flatten_children(self) -> List[ChildTable]:
        """Pre-order list of descendant tables; index i holds table number i + 1"""
        return self.flatten()[1:]

    def tables_by_no(self) -> Dict[int, Table]:
        return {t.table_no: t for t in self.flatten()}
