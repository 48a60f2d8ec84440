"""Database models for AccessGate."""

from accessgate.db.models.user import User
from accessgate.db.models.role import Role, UserRole
from accessgate.db.models.capability import Capability
from accessgate.db.models.permission import PermissionGrant
from accessgate.db.models.policy import AttributePolicy
from accessgate.db.models.route import RouteBinding
from accessgate.db.models.audit import (
    AccessLog,
    PolicyViolation,
    DecisionOutcome,
    ImmutableAuditError,
)

__all__ = [
    "User",
    "Role",
    "UserRole",
    "Capability",
    "PermissionGrant",
    "AttributePolicy",
    "RouteBinding",
    "AccessLog",
    "PolicyViolation",
    "DecisionOutcome",
    "ImmutableAuditError",
]
