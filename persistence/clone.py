"""
Deep copy of a record graph through its Table tree
"""

from typing import Any
import copy

from models.base import Cardinality
from models.table import Entity, Table


def clone_row(table: Table, source: Any) -> Any:
    """Copy the mapped fields and child containers of one row into a new record"""
    target = table.new_row()
    for field in table.fields:
        field.set_value(target, copy.copy(field.get_value(source)))

    for child in table.children:
        container = child.get_container(source)
        if container is None:
            child.set_container(target, None)
        elif child.cardinality == Cardinality.SINGLE:
            child.set_container(target, clone_row(child, container))
        elif child.cardinality == Cardinality.KEYED_MANY:
            child.set_container(target, {
                key: clone_row(child, row) if row is not None else None
                for key, row in container.items()
            })
        else:
            child.set_container(target, [
                clone_row(child, row) if row is not None else None
                for row in container
            ])
    return target


def clone_entity(entity: Entity, record: Any) -> Any:
    """
    Deep-copy an aggregate.

    The copy shares no mutable container with the source, so it can serve as
    a before-image while the source is edited.
    """
    if record is None:
        return None
    return clone_row(entity, record)
