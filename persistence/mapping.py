"""
Dataclass front end for metadata extraction.

Record types are plain dataclasses whose mapped attributes are declared with
`column()` (scalar columns) and `relation()` (nested child tables):

    @dataclass
    class LineItem:
        id: int = column("id", pk=True, default=0)
        order_id: int = column("order_id", fk=True, default=0)
        sku: str = column("sku", precision=32, default="")

    @dataclass
    class Order:
        id: int = column("id", pk=True, default=0)
        items: List[LineItem] = relation("order_items", default_factory=list)

`describe()` turns such a class into the ordered FieldDescriptor list the
schema registry consumes. Attributes without mapping metadata are ignored,
except embedded dataclasses, whose mapped attributes are flattened into the
owning table.
"""

import dataclasses
import typing
from typing import Any, Dict, List, Optional, Tuple
from models.base import Cardinality, DataType
from schemas.descriptors import FieldDescriptor
from core.exceptions import SchemaError

METADATA_KEY = "aggregate_store"


@dataclasses.dataclass(frozen=True)
class ColumnInfo:
    column: str
    pk: bool = False
    fk: bool = False
    null: bool = False
    index: bool = False
    precision: int = 0
    token: bool = False
    required: bool = False
    data_type: Optional[DataType] = None


@dataclasses.dataclass(frozen=True)
class RelationInfo:
    table_name: str


def column(
    name: str,
    *,
    pk: bool = False,
    fk: bool = False,
    null: bool = False,
    index: bool = False,
    precision: int = 0,
    token: bool = False,
    required: bool = False,
    type: Optional[DataType] = None,
    default: Any = dataclasses.MISSING,
    default_factory: Any = dataclasses.MISSING,
):
    """Declare a dataclass attribute as a mapped scalar column"""
    info = ColumnInfo(
        column=name, pk=pk, fk=fk, null=null, index=index, precision=precision,
        token=token, required=required, data_type=type,
    )
    return dataclasses.field(
        default=default, default_factory=default_factory, metadata={METADATA_KEY: info}
    )


def relation(
    table_name: str,
    *,
    default: Any = dataclasses.MISSING,
    default_factory: Any = dataclasses.MISSING,
):
    """Declare a dataclass attribute as a nested child table"""
    return dataclasses.field(
        default=default, default_factory=default_factory,
        metadata={METADATA_KEY: RelationInfo(table_name=table_name)}
    )


def unwrap_optional(annotation: Any) -> Tuple[Any, bool]:
    """Strip Optional[...] from an annotation, reporting whether it was present"""
    if typing.get_origin(annotation) is typing.Union:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0], True
    return annotation, False


def association_shape(annotation: Any) -> Tuple[Optional[type], Optional[Cardinality]]:
    """Nested record type and cardinality of a relation annotation"""
    annotation, _ = unwrap_optional(annotation)
    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)

    if origin in (list, List) and len(args) == 1:
        nested, _ = unwrap_optional(args[0])
        return nested, Cardinality.ORDERED_MANY
    if origin in (dict, Dict) and len(args) == 2:
        nested, _ = unwrap_optional(args[1])
        return nested, Cardinality.KEYED_MANY
    if origin is None and dataclasses.is_dataclass(annotation):
        return annotation, Cardinality.SINGLE
    return None, None


def describe(cls: type, _path: Tuple[str, ...] = (), _types: Tuple[type, ...] = ()) -> List[FieldDescriptor]:
    """
    Build the ordered descriptor list for a dataclass record type.

    Raises:
        SchemaError: If the type is not a dataclass or its annotations
            cannot be resolved
    """
    if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
        raise SchemaError(
            f"Invalid entity type: {cls!r}. Dataclass expected",
            context={"type_name": getattr(cls, "__name__", repr(cls))}
        )
    try:
        hints = typing.get_type_hints(cls)
    except NameError as e:
        raise SchemaError(
            f"Cannot resolve annotations of {cls.__name__}",
            context={"type_name": cls.__name__},
            original_exception=e
        )

    descriptors: List[FieldDescriptor] = []
    for fld in dataclasses.fields(cls):
        info = fld.metadata.get(METADATA_KEY)
        annotation = hints.get(fld.name, fld.type)
        path = _path + (fld.name,)

        if isinstance(info, ColumnInfo):
            native, optional = unwrap_optional(annotation)
            descriptors.append(FieldDescriptor(
                name=fld.name,
                path=path,
                path_types=_types,
                native_type=native,
                column=info.column,
                primary_key=info.pk,
                foreign_key=info.fk,
                nullable=info.null or optional,
                index=info.index,
                precision=info.precision,
                token=info.token,
                required=info.required,
                data_type=info.data_type,
            ))
        elif isinstance(info, RelationInfo):
            nested, cardinality = association_shape(annotation)
            descriptors.append(FieldDescriptor(
                name=fld.name,
                path=path,
                path_types=_types,
                native_type=annotation,
                table_name=info.table_name,
                nested_type=nested,
                cardinality=cardinality,
            ))
        else:
            # Only plain embedded records are flattened, Optional ones are references
            embedded, optional = unwrap_optional(annotation)
            if optional or embedded is cls or embedded in _types:
                continue
            if isinstance(embedded, type) and dataclasses.is_dataclass(embedded):
                descriptors.extend(describe(embedded, path, _types + (embedded,)))

    return descriptors
