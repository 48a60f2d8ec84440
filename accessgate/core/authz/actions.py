"""Actions, decision reasons and evaluation stages."""

from enum import Enum


class Action(str, Enum):
    """Actions a permission grant can allow on a capability."""
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


# Map HTTP methods to action names
METHOD_TO_ACTION = {
    "GET": Action.READ,
    "HEAD": Action.READ,
    "OPTIONS": Action.READ,
    "POST": Action.CREATE,
    "PUT": Action.UPDATE,
    "PATCH": Action.UPDATE,
    "DELETE": Action.DELETE,
}


def action_for_method(method: str) -> Action:
    """Infer the action implied by an HTTP method; unknown methods read."""
    return METHOD_TO_ACTION.get(method.upper(), Action.READ)


class DecisionReason(str, Enum):
    """Machine-readable reason codes carried by every decision."""

    # Allow
    GRANTS_ALL = "grants_all"                          # Full-access role bypass
    PERMISSION_GRANTED = "permission_granted"          # Matrix grant, policies satisfied

    # Deny
    INSUFFICIENT_PERMISSION = "insufficient_permission"
    POLICY_DENIED = "policy_denied"
    UNMAPPED_ROUTE = "unmapped_route"
    INVALID_ACTOR = "invalid_actor"
    STORAGE_ERROR = "storage_error"


class DecisionStage(str, Enum):
    """Stages of a single evaluation.

    START -> RESOLVE_ROUTE -> RBAC_CHECK -> ABAC_CHECK -> VERDICT -> AUDIT -> END

    A decision records the stage at which its verdict was reached.
    """
    START = "start"
    RESOLVE_ROUTE = "resolve_route"
    RBAC_CHECK = "rbac_check"
    ABAC_CHECK = "abac_check"
    VERDICT = "verdict"
    AUDIT = "audit"
    END = "end"
