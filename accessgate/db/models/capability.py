from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.orm import relationship

from accessgate.db.base import Base


class Capability(Base):
    """A named unit of functionality; permissions and policies anchor here."""
    __tablename__ = "capabilities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    grants = relationship("PermissionGrant", back_populates="capability", cascade="all, delete-orphan")
    policies = relationship("AttributePolicy", back_populates="capability", cascade="all, delete-orphan")
    route_bindings = relationship("RouteBinding", back_populates="capability", cascade="all, delete-orphan")
