from sqlalchemy import Column, Integer, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from accessgate.db.base import Base


class PermissionGrant(Base):
    """
    Role to capability permission matrix row.

    The four action flags are independent: none implies another. A missing
    row means the role has no permission on the capability.
    """
    __tablename__ = "permission_grants"
    __table_args__ = (
        UniqueConstraint("role_id", "capability_id", name="uq_permission_grants_role_capability"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    capability_id = Column(Integer, ForeignKey("capabilities.id", ondelete="CASCADE"), nullable=False, index=True)
    can_create = Column(Boolean, nullable=False, default=False)
    can_read = Column(Boolean, nullable=False, default=False)
    can_update = Column(Boolean, nullable=False, default=False)
    can_delete = Column(Boolean, nullable=False, default=False)

    role = relationship("Role", back_populates="grants")
    capability = relationship("Capability", back_populates="grants")
