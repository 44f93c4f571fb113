"""
Store issue model
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from app.core.db import Base
from app.models.table import new_id

class StoreIssue(Base):
    __tablename__ = "store_issues"

    id = Column(String(36), primary_key=True, default=new_id)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    issue_type = Column(String(50), nullable=False)  # missing_device, ...
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(30), default="open", nullable=False)  # open, in_progress, resolved

    # Optional structured link to the placed device instance
    table_id = Column(String(36), ForeignKey("tables.id"), nullable=True)
    device_instance_id = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    resolved_at = Column(DateTime, nullable=True)

    # Relationships
    store = relationship("Store", back_populates="issues")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "issue_type": self.issue_type,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "table_id": self.table_id,
            "device_instance_id": self.device_instance_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }
