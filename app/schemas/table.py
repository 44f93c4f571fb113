"""
Table-related Pydantic schemas
"""

from typing import Optional
from pydantic import BaseModel, Field, field_validator

from app.layout.geometry import TableType, UnsupportedTableType

class TableCreate(BaseModel):
    """Schema for creating an empty table"""
    name: str = Field(..., min_length=1)
    table_type: str

    @field_validator("table_type")
    @classmethod
    def check_table_type(cls, value: str) -> str:
        try:
            return TableType.parse(value).value
        except UnsupportedTableType as e:
            raise ValueError(str(e))

class TableDuplicate(BaseModel):
    """Duplicate request; the name defaults to '<name> - Copia'"""
    name: Optional[str] = None
