from sqlalchemy import Column, String, DateTime, Numeric, ForeignKey, Index, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from app.core.database import Base


class PayoutStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class PayoutSource(str, enum.Enum):
    CALCULATED = "CALCULATED"
    MANUAL = "MANUAL"


class CommissionPayout(Base):
    __tablename__ = "commission_payouts"
    __table_args__ = (
        Index("ix_commission_payouts_user_period", "user_id", "period"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False)

    period = Column(String(7), nullable=False, index=True)  # YYYY-MM

    amount = Column(Numeric(12, 2), nullable=False)

    status = Column(SQLEnum(PayoutStatus), nullable=False, default=PayoutStatus.PENDING)
    source = Column(SQLEnum(PayoutSource), nullable=False, default=PayoutSource.CALCULATED)

    # "metadata" is reserved on declarative classes
    payout_metadata = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="payouts")
