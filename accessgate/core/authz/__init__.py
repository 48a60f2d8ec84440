"""Authorization decision engine.

Route resolution, role-based and attribute-based evaluation, and the
orchestrator that combines them. Binding registration lives in
``accessgate.core.authz.bindings``.
"""

from .actions import Action, DecisionReason, DecisionStage, METHOD_TO_ACTION, action_for_method
from .actor import Actor, ActorAttributes, validate_actor
from .errors import (
    AuthorizationError,
    StorageError,
    InvalidActorError,
    AuditWriteError,
    AmbiguousRouteError,
)
from .routes import RoutePattern, RouteResolver, RouteMatch, RouteBindingRecord
from .rbac import RBACEvaluator, RBACResult, RoleKind, RoleRecord, GrantRecord, EffectivePermission
from .abac import ABACEvaluator, ABACResult, PolicyOperator, PolicyRecord, PolicyFailure
from .engine import AuthorizationEngine, Decision, Explanation

__all__ = [
    # Actions and reasons
    "Action",
    "DecisionReason",
    "DecisionStage",
    "METHOD_TO_ACTION",
    "action_for_method",
    # Actor
    "Actor",
    "ActorAttributes",
    "validate_actor",
    # Errors
    "AuthorizationError",
    "StorageError",
    "InvalidActorError",
    "AuditWriteError",
    "AmbiguousRouteError",
    # Routes
    "RoutePattern",
    "RouteResolver",
    "RouteMatch",
    "RouteBindingRecord",
    # RBAC
    "RBACEvaluator",
    "RBACResult",
    "RoleKind",
    "RoleRecord",
    "GrantRecord",
    "EffectivePermission",
    # ABAC
    "ABACEvaluator",
    "ABACResult",
    "PolicyOperator",
    "PolicyRecord",
    "PolicyFailure",
    # Engine
    "AuthorizationEngine",
    "Decision",
    "Explanation",
]
