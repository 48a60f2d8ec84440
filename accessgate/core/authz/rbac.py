"""Role-based evaluation against the role/capability permission matrix.

A role is either STANDARD, whose rights come from permission grant rows, or
FULL_ACCESS, which bypasses the matrix and attribute policies entirely. The
bypass is decided here and nowhere else.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional

from .actions import Action, DecisionReason

logger = logging.getLogger(__name__)


class RoleKind(str, Enum):
    """Closed set of role kinds."""
    STANDARD = "standard"
    FULL_ACCESS = "full_access"


@dataclass(frozen=True)
class RoleRecord:
    """Read-only snapshot of a role."""
    id: int
    name: str
    kind: RoleKind = RoleKind.STANDARD

    @classmethod
    def from_flag(cls, role_id: int, name: str, grants_all: bool) -> "RoleRecord":
        kind = RoleKind.FULL_ACCESS if grants_all else RoleKind.STANDARD
        return cls(id=role_id, name=name, kind=kind)


@dataclass(frozen=True)
class CapabilityRecord:
    """Read-only snapshot of a capability."""
    id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class GrantRecord:
    """One row of the permission matrix. Flags are independent."""
    role_id: int
    capability_id: int
    can_create: bool = False
    can_read: bool = False
    can_update: bool = False
    can_delete: bool = False

    def allows(self, action: Action) -> bool:
        return bool(getattr(self, f"can_{Action(action).value}"))


@dataclass(frozen=True)
class RBACResult:
    """Outcome of the role stage."""
    allowed: bool
    reason: DecisionReason
    role_id: Optional[int] = None

    @property
    def bypasses_policies(self) -> bool:
        """Full-access allows skip attribute policies."""
        return self.allowed and self.reason is DecisionReason.GRANTS_ALL


@dataclass
class EffectivePermission:
    """Merged rights of an actor on one capability."""
    capability_id: int
    capability_name: str
    can_create: bool = False
    can_read: bool = False
    can_update: bool = False
    can_delete: bool = False

    def merge(self, grant: GrantRecord) -> None:
        self.can_create = self.can_create or grant.can_create
        self.can_read = self.can_read or grant.can_read
        self.can_update = self.can_update or grant.can_update
        self.can_delete = self.can_delete or grant.can_delete

    @property
    def has_any(self) -> bool:
        return self.can_create or self.can_read or self.can_update or self.can_delete


class RBACEvaluator:
    """Decides whether any of an actor's roles grants an action on a capability."""

    def __init__(self, store):
        """
        Args:
            store: Permission store used for role and grant lookups
        """
        self.store = store

    def full_access_role(self, roles: Iterable[RoleRecord]) -> Optional[RoleRecord]:
        """Return the first full-access role, if any."""
        for role in sorted(roles, key=lambda r: r.id):
            if role.kind is RoleKind.FULL_ACCESS:
                return role
        return None

    def evaluate(self, role_ids: Iterable[int], capability_id: int, action: Action) -> RBACResult:
        """
        Evaluate the role stage.

        Args:
            role_ids: Actor's role ids
            capability_id: Resolved capability
            action: Requested action

        Returns:
            RBACResult; ``role_id`` names the deciding role when there is one

        Raises:
            StorageError: roles or grants could not be read
        """
        role_ids = frozenset(role_ids)
        action = Action(action)

        if not role_ids:
            return RBACResult(allowed=False, reason=DecisionReason.INSUFFICIENT_PERMISSION)

        full_access = self.full_access_role(self.store.get_roles(role_ids))
        if full_access is not None:
            return RBACResult(allowed=True, reason=DecisionReason.GRANTS_ALL, role_id=full_access.id)

        grants = self.store.get_permission_grants(role_ids, capability_id)
        for grant in sorted(grants, key=lambda g: g.role_id):
            if grant.allows(action):
                return RBACResult(
                    allowed=True,
                    reason=DecisionReason.PERMISSION_GRANTED,
                    role_id=grant.role_id,
                )

        logger.debug(
            f"No role in {sorted(role_ids)} grants {action.value} on capability {capability_id}"
        )
        return RBACResult(
            allowed=False,
            reason=DecisionReason.INSUFFICIENT_PERMISSION,
            role_id=next(iter(role_ids)) if len(role_ids) == 1 else None,
        )

    def effective_permissions(self, role_ids: Iterable[int]) -> List[EffectivePermission]:
        """
        List the merged rights of a role set, one entry per capability.

        Full-access roles yield every capability with every action.
        Capabilities with no granted action are omitted.
        """
        role_ids = frozenset(role_ids)
        if not role_ids:
            return []

        capabilities = {c.id: c for c in self.store.list_capabilities()}

        if self.full_access_role(self.store.get_roles(role_ids)) is not None:
            return [
                EffectivePermission(
                    capability_id=c.id,
                    capability_name=c.name,
                    can_create=True,
                    can_read=True,
                    can_update=True,
                    can_delete=True,
                )
                for c in sorted(capabilities.values(), key=lambda c: c.name)
            ]

        merged: Dict[int, EffectivePermission] = {}
        for grant in self.store.get_role_grants(role_ids):
            capability = capabilities.get(grant.capability_id)
            if capability is None:
                continue
            entry = merged.setdefault(
                grant.capability_id,
                EffectivePermission(capability_id=capability.id, capability_name=capability.name),
            )
            entry.merge(grant)

        return sorted(
            (p for p in merged.values() if p.has_any),
            key=lambda p: p.capability_name,
        )
