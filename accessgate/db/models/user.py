from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship

from accessgate.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, default=True)

    # ABAC attributes
    department = Column(String(100), nullable=True, index=True)
    region = Column(String(100), nullable=True, index=True)
    level = Column(Integer, nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user_roles = relationship("UserRole", back_populates="user", cascade="all, delete-orphan")
    # Audit rows are immutable; the database nulls user_id on delete
    access_logs = relationship("AccessLog", back_populates="user", passive_deletes="all")
    policy_violations = relationship("PolicyViolation", back_populates="user", passive_deletes="all")
