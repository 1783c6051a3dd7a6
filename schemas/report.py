"""
Pydantic schema summarising one save operation
"""

from pydantic import BaseModel, Field
from typing import Any, Optional


class SaveReport(BaseModel):
    """Row counts of a save, per outcome"""
    
    primary_key: Optional[Any] = None
    inserted: int = Field(default=0, ge=0)
    updated: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    deleted: int = Field(default=0, ge=0)
    saved: bool = True
    
    @property
    def rows_written(self) -> int:
        return self.inserted + self.updated + self.deleted
