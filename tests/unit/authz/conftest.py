"""In-memory permission store for evaluator tests that need no database."""

from itertools import count
from typing import Dict, List, Optional

import pytest

from accessgate.core.authz.abac import PolicyRecord
from accessgate.core.authz.rbac import CapabilityRecord, GrantRecord, RoleRecord
from accessgate.core.authz.routes import RouteBindingRecord, normalize_method, normalize_path


class InMemoryStore:
    """Implements the store reads the evaluators use, backed by plain lists."""

    def __init__(self):
        self._ids = count(1)
        self.roles: Dict[int, RoleRecord] = {}
        self.capabilities: Dict[int, CapabilityRecord] = {}
        self.grants: List[GrantRecord] = []
        self.policies: List[PolicyRecord] = []
        self.bindings: List[RouteBindingRecord] = []

    # Builders

    def add_role(self, role_id: int, name: Optional[str] = None, grants_all: bool = False) -> RoleRecord:
        role = RoleRecord.from_flag(role_id, name or f"role-{role_id}", grants_all)
        self.roles[role_id] = role
        return role

    def add_capability(self, capability_id: int, name: str) -> CapabilityRecord:
        capability = CapabilityRecord(id=capability_id, name=name)
        self.capabilities[capability_id] = capability
        return capability

    def add_grant(self, role_id: int, capability_id: int, **flags) -> GrantRecord:
        grant = GrantRecord(role_id=role_id, capability_id=capability_id, **flags)
        self.grants.append(grant)
        return grant

    def add_policy(self, capability_id: int, attribute: str, operator: str, value: str) -> PolicyRecord:
        policy = PolicyRecord(
            id=next(self._ids),
            capability_id=capability_id,
            attribute=attribute,
            operator=operator,
            value=value,
        )
        self.policies.append(policy)
        return policy

    def add_binding(self, path: str, capability_id: int, method: Optional[str] = None) -> RouteBindingRecord:
        binding = RouteBindingRecord(
            id=next(self._ids),
            path=normalize_path(path),
            method=normalize_method(method),
            capability_id=capability_id,
        )
        self.bindings.append(binding)
        return binding

    # Reads

    def get_roles(self, role_ids):
        return [self.roles[i] for i in sorted(role_ids) if i in self.roles]

    def get_permission_grants(self, role_ids, capability_id):
        return [g for g in self.grants if g.role_id in role_ids and g.capability_id == capability_id]

    def get_role_grants(self, role_ids):
        return [g for g in self.grants if g.role_id in role_ids]

    def get_policies(self, capability_id):
        return [p for p in self.policies if p.capability_id == capability_id]

    def find_exact_binding(self, path, method):
        path = normalize_path(path)
        method = normalize_method(method)
        same_path = [b for b in self.bindings if b.path == path]
        for binding in same_path:
            if method is not None and binding.method == method:
                return binding
        for binding in same_path:
            if binding.method is None:
                return binding
        return None

    def list_bindings(self, method=None):
        method = normalize_method(method)
        return [b for b in self.bindings if b.method is None or b.method == method]

    def list_capabilities(self):
        return sorted(self.capabilities.values(), key=lambda c: c.name)


@pytest.fixture
def store():
    return InMemoryStore()
