from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from app.core.database import Base


class CommissionRule(Base):
    __tablename__ = "commission_rules"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    name = Column(String(255), nullable=False)

    # Rule configuration (JSON), interpreted by app.services.commission_rules
    # e.g. {"kind": "flat_rate", "default_rate": "0.07"}
    rule = Column(JSON, nullable=False)

    active = Column(Boolean, default=True, nullable=False, index=True)

    created_by = Column(String, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    creator = relationship("User")
