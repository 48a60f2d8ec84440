"""Route binding registration and YAML sync.

Bindings are registered through ``register_route_binding``, which refuses a
binding that duplicates an existing one or whose parameterized path overlaps
an existing parameterized path for an overlapping method.

A binding file looks like::

    route_bindings:
      - path: /api/users
        method: GET
        capability: users
      - path: /api/users/:id/roles
        capability: users        # no method: any method
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from sqlalchemy.orm import Session

from accessgate.db.models import Capability, RouteBinding
from accessgate.db.store import PermissionStore
from .errors import AmbiguousRouteError
from .routes import find_conflict, normalize_method, normalize_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteBindingSpec:
    """One binding as declared in a binding file."""
    path: str
    capability: str
    method: Optional[str] = None


@dataclass
class SyncReport:
    """Outcome of syncing a binding file into storage."""
    created: List[RouteBindingSpec] = field(default_factory=list)
    unchanged: List[RouteBindingSpec] = field(default_factory=list)
    conflicts: List[str] = field(default_factory=list)
    missing_capabilities: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "created": len(self.created),
            "unchanged": len(self.unchanged),
            "conflicts": list(self.conflicts),
            "missing_capabilities": sorted(set(self.missing_capabilities)),
        }


def parse_route_bindings(data: Dict[str, Any]) -> List[RouteBindingSpec]:
    """
    Parse the ``route_bindings`` list of a loaded binding file.

    Raises:
        ValueError: an entry lacks a path or capability
        TypeError: the list or an entry has the wrong shape
    """
    entries = data.get("route_bindings") or []
    if not isinstance(entries, list):
        raise TypeError(f"route_bindings must be a list, got {type(entries).__name__}")

    specs = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise TypeError(f"route_bindings[{index}] must be a mapping, got {type(entry).__name__}")
        path = entry.get("path")
        capability = entry.get("capability")
        if not path or not capability:
            raise ValueError(f"route_bindings[{index}] requires 'path' and 'capability'")
        specs.append(RouteBindingSpec(
            path=normalize_path(str(path)),
            capability=str(capability),
            method=normalize_method(entry.get("method")),
        ))
    return specs


def load_route_bindings(bindings_path: str) -> List[RouteBindingSpec]:
    """Load route bindings from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If the file is invalid YAML
        TypeError: If the file root is not a mapping
    """
    bindings_file = Path(bindings_path)
    if not bindings_file.exists():
        raise FileNotFoundError(f"Route binding file not found: {bindings_path}")

    with bindings_file.open("r") as f:
        data = yaml.safe_load(f)

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise TypeError(f"Route binding file root must be a mapping, got {type(data).__name__}")

    return parse_route_bindings(data)


def register_route_binding(
    db: Session,
    path: str,
    capability_id: int,
    method: Optional[str] = None,
) -> RouteBinding:
    """
    Register a route binding after checking it against existing ones.

    Raises:
        ValueError: the capability does not exist
        AmbiguousRouteError: the binding duplicates or overlaps an existing one
        StorageError: existing bindings could not be read
    """
    path = normalize_path(path)
    method = normalize_method(method)

    if db.query(Capability).filter(Capability.id == capability_id).first() is None:
        raise ValueError(f"Capability {capability_id} not found")

    conflict = find_conflict(path, method, PermissionStore(db).list_all_bindings())
    if conflict is not None:
        raise AmbiguousRouteError(path, method, conflict.path, conflict.method)

    binding = RouteBinding(path=path, method=method, capability_id=capability_id)
    db.add(binding)
    db.commit()
    db.refresh(binding)
    logger.info(f"Registered route binding {method or '*'} {path} -> capability {capability_id}")
    return binding


def sync_route_bindings(
    db: Session,
    specs: List[RouteBindingSpec],
    create_missing_capabilities: bool = False,
) -> SyncReport:
    """
    Register every binding from a binding file that is not already stored.

    Bindings already stored with the same capability are left alone;
    conflicting ones are reported and skipped.
    """
    report = SyncReport()
    store = PermissionStore(db)

    for spec in specs:
        capability = db.query(Capability).filter(Capability.name == spec.capability).first()
        if capability is None:
            if not create_missing_capabilities:
                report.missing_capabilities.append(spec.capability)
                logger.warning(f"Skipping {spec.method or '*'} {spec.path}: unknown capability '{spec.capability}'")
                continue
            capability = Capability(name=spec.capability)
            db.add(capability)
            db.commit()
            db.refresh(capability)
            logger.info(f"Created capability '{spec.capability}'")

        existing = store.find_exact_binding(spec.path, spec.method)
        if (
            existing is not None
            and existing.method == spec.method
            and existing.capability_id == capability.id
        ):
            report.unchanged.append(spec)
            continue

        try:
            register_route_binding(db, spec.path, capability.id, spec.method)
        except AmbiguousRouteError as e:
            logger.warning(f"Skipping conflicting route binding: {e}")
            report.conflicts.append(str(e))
            continue
        report.created.append(spec)

    logger.info(
        f"Route binding sync: {len(report.created)} created, {len(report.unchanged)} unchanged, "
        f"{len(report.conflicts)} conflicts, {len(report.missing_capabilities)} missing capabilities"
    )
    return report
