"""
Table model
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Float, Integer, DateTime, JSON
from sqlalchemy.orm import relationship

from app.core.db import Base

def new_id() -> str:
    return str(uuid.uuid4())

class Table(Base):
    __tablename__ = "tables"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    table_type = Column(String(50), nullable=False)  # singolo, doppio_back_to_back, doppio_free_standing, test

    # Layout document
    devices = Column(JSON, default=list)
    slots = Column(JSON, default=list)
    price_tags = Column(JSON, default=list)
    image_url = Column(String(1024), nullable=True)
    image_scale = Column(Float, default=1.0, nullable=False)
    image_width = Column(Integer, nullable=True)
    image_height = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    store_links = relationship("StoreTable", back_populates="table", cascade="all, delete-orphan")
    price_tag_associations = relationship("PriceTagDeviceAssociation", back_populates="table", cascade="all, delete-orphan")

    def to_document(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "table_type": self.table_type,
            "devices": self.devices or [],
            "slots": self.slots or [],
            "price_tags": self.price_tags or [],
            "image_url": self.image_url,
            "image_scale": self.image_scale or 1.0,
            "image_width": self.image_width,
            "image_height": self.image_height,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
