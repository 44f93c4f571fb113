"""
Store model
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.orm import relationship

from app.core.db import Base
from app.models.table import new_id

class Store(Base):
    __tablename__ = "stores"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    category = Column(String(50), nullable=False)  # White, Tier2
    chain = Column(String(100), nullable=False, index=True)
    location = Column(String(255), nullable=False)
    director_email = Column(String(255), nullable=True)
    email_informatics = Column(JSON, default=list)
    email_technical = Column(JSON, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    table_links = relationship("StoreTable", back_populates="store", cascade="all, delete-orphan", order_by="StoreTable.created_at")
    issues = relationship("StoreIssue", back_populates="store", cascade="all, delete-orphan")
