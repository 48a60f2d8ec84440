"""Audit trail models for AccessGate.

Both tables are APPEND-ONLY. ORM listeners refuse UPDATE and DELETE so the
engine can never rewrite an entry once it is flushed. Retention and pruning
are handled outside the application.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any
from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey, Text, event
from sqlalchemy.orm import relationship

from accessgate.db.base import Base


class DecisionOutcome(str, Enum):
    """Verdict stored on an access log entry."""
    ALLOW = "allow"
    DENY = "deny"


class ImmutableAuditError(Exception):
    """Raised when code attempts to modify or delete an audit row."""


class AccessLog(Base):
    """One row per authorization decision, allow or deny."""
    __tablename__ = "access_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Actor and target; SET NULL keeps the trail when the referenced row goes away
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="SET NULL"), nullable=True)
    capability_id = Column(Integer, ForeignKey("capabilities.id", ondelete="SET NULL"), nullable=True, index=True)

    # Request
    path = Column(String(255), nullable=False)
    method = Column(String(10), nullable=True)

    # Verdict
    decision = Column(String(10), nullable=False, index=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User", back_populates="access_logs")

    def __repr__(self) -> str:
        return f"<AccessLog {self.decision} {self.method} {self.path} user={self.user_id}>"

    @classmethod
    def create_entry(
        cls,
        path: str,
        decision: DecisionOutcome,
        *,
        method: Optional[str] = None,
        user_id: Optional[int] = None,
        role_id: Optional[int] = None,
        capability_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> "AccessLog":
        """
        Factory method to create a new access log entry.

        Args:
            path: Request path as received
            decision: allow or deny
            method: HTTP method
            user_id: Acting user (None when the actor was missing)
            role_id: Role that decided the outcome, if any
            capability_id: Resolved capability (None for unmapped routes)
            reason: Machine-readable reason code
        """
        return cls(
            user_id=user_id,
            role_id=role_id,
            capability_id=capability_id,
            path=path[:255],
            method=method,
            decision=decision.value if isinstance(decision, DecisionOutcome) else decision,
            reason=reason,
        )


class PolicyViolation(Base):
    """Written only when an attribute policy denies a request."""
    __tablename__ = "policy_violations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    capability_id = Column(Integer, ForeignKey("capabilities.id", ondelete="SET NULL"), nullable=True, index=True)
    policy_id = Column(Integer, ForeignKey("attribute_policies.id", ondelete="SET NULL"), nullable=True, index=True)

    attribute = Column(String(100), nullable=False, index=True)
    operator = Column(String(10), nullable=True)
    expected_value = Column(Text, nullable=True)
    actual_value = Column(Text, nullable=True)
    reason = Column(Text, nullable=False)
    request_data = Column(JSON, nullable=True)  # method, path, action
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User", back_populates="policy_violations")

    def __repr__(self) -> str:
        return f"<PolicyViolation {self.attribute} {self.operator} {self.expected_value} user={self.user_id}>"

    @classmethod
    def create_entry(
        cls,
        attribute: str,
        reason: str,
        *,
        user_id: Optional[int] = None,
        capability_id: Optional[int] = None,
        policy_id: Optional[int] = None,
        operator: Optional[str] = None,
        expected_value: Optional[str] = None,
        actual_value: Optional[str] = None,
        request_data: Optional[Dict[str, Any]] = None,
    ) -> "PolicyViolation":
        """Factory method to create a new policy violation entry."""
        return cls(
            user_id=user_id,
            capability_id=capability_id,
            policy_id=policy_id,
            attribute=attribute,
            operator=operator,
            expected_value=expected_value,
            actual_value=actual_value,
            reason=reason,
            request_data=request_data,
        )


def _refuse_update(mapper, connection, target):
    raise ImmutableAuditError(f"{type(target).__name__} entries are immutable")


def _refuse_delete(mapper, connection, target):
    raise ImmutableAuditError(f"{type(target).__name__} entries cannot be deleted")


for _model in (AccessLog, PolicyViolation):
    event.listen(_model, "before_update", _refuse_update)
    event.listen(_model, "before_delete", _refuse_delete)
