"""
Store and issue Pydantic schemas
"""

from typing import List, Optional
from pydantic import BaseModel, EmailStr

class StoreCreate(BaseModel):
    """Schema for creating a store"""
    name: str
    category: str
    chain: str
    location: str
    director_email: Optional[EmailStr] = None
    email_informatics: List[EmailStr] = []
    email_technical: List[EmailStr] = []

class StoreTableLink(BaseModel):
    """Associate a table with a store"""
    table_id: str

class IssueCreate(BaseModel):
    """Schema for reporting a store issue"""
    issue_type: str = "missing_device"
    title: str
    description: Optional[str] = None
    table_id: Optional[str] = None
    device_instance_id: Optional[str] = None
