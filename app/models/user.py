from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from app.core.database import Base


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    STAFF = "STAFF"
    REP = "REP"
    SUB_REP = "SUB_REP"


# Roles that earn commission on their own orders
COMMISSIONABLE_ROLES = (UserRole.REP, UserRole.SUB_REP)


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)

    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.REP)

    # Sub-reps roll up to exactly one parent rep
    parent_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)

    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    # Relationships
    parent = relationship("User", remote_side=[id], back_populates="sub_reps")
    sub_reps = relationship("User", back_populates="parent")
    orders = relationship("Order", back_populates="user")
    payouts = relationship("CommissionPayout", back_populates="user")
    audit_logs = relationship("AuditLog", back_populates="user")
