"""
Pydantic schemas for ad-hoc queries against an entity's root table
"""

from pydantic import BaseModel, Field, field_validator
from typing import Any, List
from core.config import settings
import enum


class WhereOperation(str, enum.Enum):
    """Comparison applied by a where criteria"""
    EQUAL = "equal"
    LESS = "less"
    GREATER = "greater"
    LIKE = "like"


class WhereCriteria(BaseModel):
    """
    One comparison of a root-table field against a value.

    ``field`` is the attribute or column name. A ``None`` value compares
    with IS NULL and is only valid with EQUAL. ``exclude`` negates the
    comparison.
    """
    
    field: str = Field(..., min_length=1)
    operation: WhereOperation = WhereOperation.EQUAL
    value: Any = None
    exclude: bool = False
    
    def excluded(self) -> "WhereCriteria":
        return self.model_copy(update={"exclude": True})


class SortCriteria(BaseModel):
    """Sort key of a query"""
    field: str = Field(..., min_length=1)
    ascending: bool = True


class QueryRequest(BaseModel):
    """
    Filtered, sorted, paginated read of an entity.
    
    ``where_clause`` is a disjunction of conjunctions: criteria inside one
    group are ANDed, groups are ORed.
    """
    
    where_clause: List[List[WhereCriteria]] = Field(default_factory=list)
    sort: List[SortCriteria] = Field(default_factory=list)
    limit: int = Field(default=0, ge=0, description="Maximum rows, 0 for no limit")
    offset: int = Field(default=0, ge=0)
    header_only: bool = Field(default=False, description="Skip loading child tables")
    
    @field_validator("limit")
    @classmethod
    def check_limit(cls, v):
        """Keep limits within the configured maximum"""
        if v > settings.QUERY_MAX_LIMIT:
            raise ValueError(f"limit must not exceed {settings.QUERY_MAX_LIMIT}")
        return v
    
    def where(self, criteria: WhereCriteria) -> "QueryRequest":
        """Start a new where clause with a single criteria"""
        self.where_clause = [[criteria]]
        return self
    
    def and_(self, criteria: WhereCriteria) -> "QueryRequest":
        if not self.where_clause:
            self.where_clause.append([])
        self.where_clause[-1].append(criteria)
        return self
    
    def or_(self, criteria: WhereCriteria) -> "QueryRequest":
        self.where_clause.append([criteria])
        return self
    
    def order_by(self, field: str, ascending: bool = True) -> "QueryRequest":
        self.sort.append(SortCriteria(field=field, ascending=ascending))
        return self
