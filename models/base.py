import dataclasses
import enum
from typing import Any


# ============================================================================
# ENUMS
# ============================================================================

class DataType(str, enum.Enum):
    """Canonical column value kinds"""
    BOOL = "bool"
    INT32 = "int32"
    INT64 = "int64"
    FLOAT = "float"
    DATETIME = "datetime"
    STRING = "string"
    BLOB = "blob"


class Cardinality(str, enum.Enum):
    """Shape of a parent -> child association"""
    SINGLE = "single"
    ORDERED_MANY = "ordered_many"
    KEYED_MANY = "keyed_many"


INTEGER_TYPES = (DataType.INT32, DataType.INT64)


def new_record(cls: type) -> Any:
    """
    Instantiate a record class without calling its constructor.

    Dataclass fields receive their declared default (or a fresh value from
    their default factory); fields without a default start as None. The
    optional ``on_entity_init`` hook runs last.
    """
    record = cls.__new__(cls)
    for fld in dataclasses.fields(cls):
        if fld.default is not dataclasses.MISSING:
            value = fld.default
        elif fld.default_factory is not dataclasses.MISSING:
            value = fld.default_factory()
        else:
            value = None
        setattr(record, fld.name, value)

    hook = getattr(record, "on_entity_init", None)
    if callable(hook):
        hook()
    return record
