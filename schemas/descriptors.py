"""
Pydantic schemas for field descriptors produced by metadata extraction
"""

from pydantic import BaseModel, Field
from typing import Any, Optional, Tuple
from models.base import Cardinality, DataType


class FieldDescriptor(BaseModel):
    """
    One mapped attribute of a record type.

    A descriptor is either a scalar column (``column`` set) or a nested
    association (``table_name``, ``nested_type`` and ``cardinality`` set).
    ``path`` locates the value inside the record; it is longer than one
    element when the attribute lives in an embedded record.
    """
    
    name: str = Field(..., min_length=1)
    path: Tuple[str, ...]
    path_types: Tuple[Any, ...] = ()
    native_type: Any = None
    
    # Scalar column
    column: Optional[str] = None
    primary_key: bool = False
    foreign_key: bool = False
    nullable: bool = False
    index: bool = False
    precision: int = Field(0, ge=0, le=65535)
    token: bool = False
    required: bool = False
    data_type: Optional[DataType] = None
    
    # Nested association
    table_name: Optional[str] = None
    nested_type: Any = None
    cardinality: Optional[Cardinality] = None
    
    @property
    def is_association(self) -> bool:
        return self.table_name is not None
    
    class Config:
        arbitrary_types_allowed = True
        frozen = True
