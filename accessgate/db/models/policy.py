from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from accessgate.db.base import Base


class AttributePolicy(Base):
    """
    ABAC predicate bound to a capability.

    Evaluated as ``<actor attribute> <operator> <value>``. Every policy bound
    to a capability must hold for the request to pass.
    """
    __tablename__ = "attribute_policies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    capability_id = Column(Integer, ForeignKey("capabilities.id", ondelete="CASCADE"), nullable=False, index=True)
    attribute = Column(String(100), nullable=False, index=True)  # department, region, level, ...
    operator = Column(String(10), nullable=False)                 # ==, !=, >, <, >=, <=, in, not_in
    value = Column(Text, nullable=False)                          # "Finance", "3", "Jakarta,Bandung"
    created_at = Column(DateTime, default=datetime.utcnow)

    capability = relationship("Capability", back_populates="policies")
