from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship

from accessgate.db.base import Base


class RouteBinding(Base):
    """Maps an HTTP method and path (``:param`` segments allowed) to a capability."""
    __tablename__ = "route_bindings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    path = Column(String(255), nullable=False, index=True)
    method = Column(String(10), nullable=True)  # NULL matches any method
    capability_id = Column(Integer, ForeignKey("capabilities.id", ondelete="CASCADE"), nullable=False, index=True)

    capability = relationship("Capability", back_populates="route_bindings")

    def __repr__(self) -> str:
        return f"<RouteBinding {self.method or '*'} {self.path} -> {self.capability_id}>"
