"""
Price tag models
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.db import Base
from app.models.table import new_id

class PriceTagDeviceAssociation(Base):
    __tablename__ = "price_tag_device_associations"

    id = Column(String(36), primary_key=True, default=new_id)
    table_id = Column(String(36), ForeignKey("tables.id"), nullable=False, index=True)
    price_tag_name = Column(String(255), nullable=False)
    device_id = Column(String(100), nullable=False)
    device_name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    table = relationship("Table", back_populates="price_tag_associations")

class ChainPriceTag(Base):
    __tablename__ = "chain_price_tags"

    id = Column(String(36), primary_key=True, default=new_id)
    chain = Column(String(100), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (UniqueConstraint("chain", "name", name="uq_chain_price_tag"),)
