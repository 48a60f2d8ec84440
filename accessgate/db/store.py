"""Read access to roles, grants, policies, attributes and route bindings.

The store hands the engine immutable snapshot records rather than ORM
instances, so nothing evaluated can be mutated or lazily reloaded mid-decision.
Every database failure surfaces as ``StorageError``.
"""

import logging
from contextlib import contextmanager
from typing import FrozenSet, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from accessgate.core.authz.abac import PolicyRecord
from accessgate.core.authz.actor import Actor, ActorAttributes
from accessgate.core.authz.errors import StorageError
from accessgate.core.authz.rbac import CapabilityRecord, GrantRecord, RoleRecord
from accessgate.core.authz.routes import RouteBindingRecord, normalize_method, normalize_path
from accessgate.db.models import (
    AttributePolicy,
    Capability,
    PermissionGrant,
    Role,
    RouteBinding,
    User,
    UserRole,
)

logger = logging.getLogger(__name__)


def _role_record(role: Role) -> RoleRecord:
    return RoleRecord.from_flag(role.id, role.name, bool(role.grants_all))


def _grant_record(grant: PermissionGrant) -> GrantRecord:
    return GrantRecord(
        role_id=grant.role_id,
        capability_id=grant.capability_id,
        can_create=bool(grant.can_create),
        can_read=bool(grant.can_read),
        can_update=bool(grant.can_update),
        can_delete=bool(grant.can_delete),
    )


def _policy_record(policy: AttributePolicy) -> PolicyRecord:
    return PolicyRecord(
        id=policy.id,
        capability_id=policy.capability_id,
        attribute=policy.attribute,
        operator=policy.operator,
        value=policy.value,
    )


def _binding_record(binding: RouteBinding) -> RouteBindingRecord:
    return RouteBindingRecord(
        id=binding.id,
        path=binding.path,
        method=normalize_method(binding.method),
        capability_id=binding.capability_id,
    )


def _capability_record(capability: Capability) -> CapabilityRecord:
    return CapabilityRecord(
        id=capability.id,
        name=capability.name,
        description=capability.description,
        category=capability.category,
    )


def _attributes(user: User) -> ActorAttributes:
    return ActorAttributes.from_dict({
        "department": user.department,
        "region": user.region,
        "level": user.level,
    })


class PermissionStore:
    """Pure reads over the permission schema, scoped to one session."""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _translate_errors(self, operation: str):
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"Database error during {operation}: {e}")
            try:
                self.db.rollback()
            except SQLAlchemyError:
                logger.exception(f"Rollback failed after {operation}")
            raise StorageError(operation, e) from e

    # Roles and grants

    def get_roles(self, role_ids: Iterable[int]) -> List[RoleRecord]:
        role_ids = list(role_ids)
        if not role_ids:
            return []
        with self._translate_errors("get_roles"):
            roles = self.db.query(Role).filter(Role.id.in_(role_ids)).order_by(Role.id).all()
        return [_role_record(r) for r in roles]

    def get_permission_grants(self, role_ids: Iterable[int], capability_id: int) -> List[GrantRecord]:
        role_ids = list(role_ids)
        if not role_ids:
            return []
        with self._translate_errors("get_permission_grants"):
            grants = (
                self.db.query(PermissionGrant)
                .filter(
                    PermissionGrant.role_id.in_(role_ids),
                    PermissionGrant.capability_id == capability_id,
                )
                .order_by(PermissionGrant.role_id)
                .all()
            )
        return [_grant_record(g) for g in grants]

    def get_role_grants(self, role_ids: Iterable[int]) -> List[GrantRecord]:
        """All grants held by a set of roles, across capabilities."""
        role_ids = list(role_ids)
        if not role_ids:
            return []
        with self._translate_errors("get_role_grants"):
            grants = (
                self.db.query(PermissionGrant)
                .filter(PermissionGrant.role_id.in_(role_ids))
                .order_by(PermissionGrant.capability_id, PermissionGrant.role_id)
                .all()
            )
        return [_grant_record(g) for g in grants]

    # Policies

    def get_policies(self, capability_id: int) -> List[PolicyRecord]:
        """Policies bound to a capability, in registration order."""
        with self._translate_errors("get_policies"):
            policies = (
                self.db.query(AttributePolicy)
                .filter(AttributePolicy.capability_id == capability_id)
                .order_by(AttributePolicy.id)
                .all()
            )
        return [_policy_record(p) for p in policies]

    # Users

    def get_user_attributes(self, user_id: int) -> Optional[ActorAttributes]:
        with self._translate_errors("get_user_attributes"):
            user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            return None
        return _attributes(user)

    def get_user_role_ids(self, user_id: int) -> FrozenSet[int]:
        with self._translate_errors("get_user_role_ids"):
            rows = self.db.query(UserRole.role_id).filter(UserRole.user_id == user_id).all()
        return frozenset(row[0] for row in rows)

    def load_actor(self, user_id: int) -> Optional[Actor]:
        """
        Build the actor for an authenticated user id.

        Returns None for unknown or inactive users.
        """
        with self._translate_errors("load_actor"):
            user = self.db.query(User).filter(User.id == user_id).first()
        if user is None or not user.is_active:
            return None
        return Actor(
            id=user.id,
            role_ids=self.get_user_role_ids(user.id),
            attributes=_attributes(user),
        )

    # Route bindings

    def find_exact_binding(self, path: str, method: Optional[str]) -> Optional[RouteBindingRecord]:
        """
        Look up a binding registered for exactly this path.

        A binding for the same method wins over a method-less binding.
        """
        path = normalize_path(path)
        method = normalize_method(method)
        with self._translate_errors("find_exact_binding"):
            candidates = (
                self.db.query(RouteBinding)
                .filter(RouteBinding.path.in_([path, path + "/"]))
                .order_by(RouteBinding.id)
                .all()
            )

        records = [_binding_record(b) for b in candidates]
        if method is not None:
            for record in records:
                if record.method == method:
                    return record
        for record in records:
            if record.method is None:
                return record
        return None

    def list_bindings(self, method: Optional[str] = None) -> List[RouteBindingRecord]:
        """Bindings for a method plus method-less bindings, in registration order."""
        method = normalize_method(method)
        with self._translate_errors("list_bindings"):
            query = self.db.query(RouteBinding)
            if method is not None:
                query = query.filter(
                    (RouteBinding.method.is_(None)) | (func.upper(RouteBinding.method) == method)
                )
            else:
                query = query.filter(RouteBinding.method.is_(None))
            bindings = query.order_by(RouteBinding.id).all()
        return [_binding_record(b) for b in bindings]

    def list_all_bindings(self) -> List[RouteBindingRecord]:
        """Every binding regardless of method, in registration order."""
        with self._translate_errors("list_all_bindings"):
            bindings = self.db.query(RouteBinding).order_by(RouteBinding.id).all()
        return [_binding_record(b) for b in bindings]

    # Capabilities

    def get_capability(self, capability_id: int) -> Optional[CapabilityRecord]:
        with self._translate_errors("get_capability"):
            capability = self.db.query(Capability).filter(Capability.id == capability_id).first()
        return _capability_record(capability) if capability else None

    def get_capability_by_name(self, name: str) -> Optional[CapabilityRecord]:
        with self._translate_errors("get_capability_by_name"):
            capability = self.db.query(Capability).filter(Capability.name == name).first()
        return _capability_record(capability) if capability else None

    def list_capabilities(self) -> List[CapabilityRecord]:
        with self._translate_errors("list_capabilities"):
            capabilities = self.db.query(Capability).order_by(Capability.name).all()
        return [_capability_record(c) for c in capabilities]
