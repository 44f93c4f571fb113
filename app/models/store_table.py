"""
Store <-> table join model
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.db import Base
from app.models.table import new_id

class StoreTable(Base):
    __tablename__ = "store_tables"

    id = Column(String(36), primary_key=True, default=new_id)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    table_id = Column(String(36), ForeignKey("tables.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    store = relationship("Store", back_populates="table_links")
    table = relationship("Table", back_populates="store_links")

    __table_args__ = (UniqueConstraint("store_id", "table_id", name="uq_store_table"),)
