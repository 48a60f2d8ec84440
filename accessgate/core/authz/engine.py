"""Decision orchestrator: the single entry point request handlers call.

Sequence for one request:

    START -> RESOLVE_ROUTE -> RBAC_CHECK -> ABAC_CHECK -> VERDICT -> AUDIT -> END

- Unmapped route: deny ``unmapped_route`` (unless configured to allow)
- RBAC deny: deny with the RBAC reason; policies are never evaluated
- RBAC allow via a full-access role: allow ``grants_all``; policies skipped
- RBAC allow, a policy fails: deny ``policy_denied`` plus a policy violation
- Both allow: allow ``permission_granted``

Every outcome is written to the audit trail before ``authorize`` returns.
Audit write failures are logged and never change the decision.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from .abac import ABACEvaluator, ABACResult, PolicyFailure
from .actions import Action, DecisionReason, DecisionStage, action_for_method
from .actor import Actor, validate_actor
from .errors import AuditWriteError, InvalidActorError, StorageError
from .rbac import RBACEvaluator, RBACResult
from .routes import RouteMatch, RouteResolver, normalize_method

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Decision:
    """Verdict of one authorization call."""
    allowed: bool
    reason: DecisionReason
    stage: DecisionStage
    capability_id: Optional[int] = None
    role_id: Optional[int] = None
    detail: Optional[str] = None
    violation: Optional[PolicyFailure] = None

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "reason": self.reason.value,
            "stage": self.stage.value,
            "capability_id": self.capability_id,
            "role_id": self.role_id,
            "detail": self.detail,
            "violation": self.violation.to_dict() if self.violation else None,
        }


@dataclass(frozen=True)
class Explanation:
    """Dry-run evaluation with the intermediate results of every stage."""
    decision: Decision
    action: Action
    route: Optional[RouteMatch] = None
    rbac: Optional[RBACResult] = None
    abac: Optional[ABACResult] = None

    @property
    def failures(self) -> List[PolicyFailure]:
        return list(self.abac.failures) if self.abac else []

    def to_dict(self) -> dict:
        route = None
        if self.route is not None:
            route = {
                "binding_id": self.route.binding.id,
                "path": self.route.binding.path,
                "method": self.route.binding.method,
                "capability_id": self.route.capability_id,
                "exact": self.route.exact,
                "params": dict(self.route.params),
            }
        rbac = None
        if self.rbac is not None:
            rbac = {
                "allowed": self.rbac.allowed,
                "reason": self.rbac.reason.value,
                "role_id": self.rbac.role_id,
            }
        return {
            "decision": self.decision.to_dict(),
            "action": self.action.value,
            "route": route,
            "rbac": rbac,
            "policies_evaluated": self.abac.evaluated if self.abac else 0,
            "policy_failures": [f.to_dict() for f in self.failures],
        }


class AuthorizationEngine:
    """
    Combines route resolution, role checks and attribute policies into one verdict.

    Constructed per request around a request-scoped store; holds no state
    between calls.
    """

    def __init__(self, store, recorder=None, *, unmapped_route_policy: str = "deny"):
        """
        Args:
            store: Permission store for all reads
            recorder: Audit recorder; None disables audit writes
            unmapped_route_policy: "deny" (default) or "allow" for routes with no binding
        """
        if unmapped_route_policy not in ("deny", "allow"):
            raise ValueError(f"Invalid unmapped route policy: {unmapped_route_policy}")
        self.store = store
        self.recorder = recorder
        self.unmapped_route_policy = unmapped_route_policy
        self.resolver = RouteResolver(store)
        self.rbac = RBACEvaluator(store)
        self.abac = ABACEvaluator(store)

    def authorize(
        self,
        actor: Optional[Actor],
        method: str,
        path: str,
        action: Optional[Union[Action, str]] = None,
    ) -> Decision:
        """
        Decide whether ``actor`` may perform ``action`` on the route ``(method, path)``.

        Args:
            actor: Authenticated actor, or None when authentication failed
            method: HTTP method of the request
            path: Request path
            action: Requested action; inferred from the method when omitted

        Returns:
            Decision; the audit trail has been written (or the failure logged)

        Raises:
            ValueError: action is not one of create/read/update/delete
        """
        action = action_for_method(method) if action is None else Action(action)
        decision = self._evaluate(actor, method, path, action).decision

        if not decision.allowed:
            logger.info(
                f"Denied {method} {path} ({action.value}) for actor "
                f"{_actor_id(actor)}: {decision.reason.value}"
            )
        self._audit(actor, method, path, action, decision)
        return decision

    def explain(
        self,
        actor: Optional[Actor],
        method: str,
        path: str,
        action: Optional[Union[Action, str]] = None,
    ) -> Explanation:
        """
        Evaluate like ``authorize`` without writing to the audit trail.

        Every policy is evaluated so the explanation lists all failures,
        not only the first.
        """
        action = action_for_method(method) if action is None else Action(action)
        return self._evaluate(actor, method, path, action, exhaustive=True)

    def _evaluate(
        self,
        actor: Optional[Actor],
        method: str,
        path: str,
        action: Action,
        exhaustive: bool = False,
    ) -> Explanation:
        stage = DecisionStage.START
        route = None
        rbac = None
        abac = None

        try:
            actor = validate_actor(actor)
        except InvalidActorError as e:
            return Explanation(
                decision=Decision(
                    allowed=False,
                    reason=DecisionReason.INVALID_ACTOR,
                    stage=stage,
                    detail=str(e),
                ),
                action=action,
            )

        try:
            stage = DecisionStage.RESOLVE_ROUTE
            route = self.resolver.resolve(method, path)
            if route is None:
                decision = Decision(
                    allowed=self.unmapped_route_policy == "allow",
                    reason=DecisionReason.UNMAPPED_ROUTE,
                    stage=stage,
                    detail=f"No route binding for {normalize_method(method) or '*'} {path}",
                )
                return Explanation(decision=decision, action=action)

            capability_id = route.capability_id

            stage = DecisionStage.RBAC_CHECK
            rbac = self.rbac.evaluate(actor.role_ids, capability_id, action)
            if not rbac.allowed or rbac.bypasses_policies:
                decision = Decision(
                    allowed=rbac.allowed,
                    reason=rbac.reason,
                    stage=stage,
                    capability_id=capability_id,
                    role_id=rbac.role_id,
                )
                return Explanation(decision=decision, action=action, route=route, rbac=rbac)

            stage = DecisionStage.ABAC_CHECK
            if exhaustive:
                abac = self.abac.evaluate_all(actor.attributes, capability_id)
            else:
                abac = self.abac.evaluate(actor.attributes, capability_id)

            if abac.allowed:
                decision = Decision(
                    allowed=True,
                    reason=rbac.reason,
                    stage=stage,
                    capability_id=capability_id,
                    role_id=rbac.role_id,
                )
            else:
                failure = abac.failure
                decision = Decision(
                    allowed=False,
                    reason=DecisionReason.POLICY_DENIED,
                    stage=stage,
                    capability_id=capability_id,
                    role_id=rbac.role_id,
                    detail=failure.reason,
                    violation=failure,
                )
            return Explanation(decision=decision, action=action, route=route, rbac=rbac, abac=abac)

        except StorageError as e:
            logger.exception(f"Storage failure while authorizing {method} {path}: {e}")
            decision = Decision(
                allowed=False,
                reason=DecisionReason.STORAGE_ERROR,
                stage=stage,
                capability_id=route.capability_id if route else None,
                detail=str(e),
            )
            return Explanation(decision=decision, action=action, route=route, rbac=rbac, abac=abac)

    def _audit(
        self,
        actor: Optional[Actor],
        method: str,
        path: str,
        action: Action,
        decision: Decision,
    ) -> None:
        """Write the violation (if any) and the access log entry; failures are logged."""
        if self.recorder is None:
            return

        user_id = _actor_id(actor)
        method = normalize_method(method)

        if decision.violation is not None:
            violation = decision.violation
            logger.warning(
                f"Policy violation by user {user_id} on capability {decision.capability_id}: "
                f"{violation.reason}"
            )
            try:
                self.recorder.record_violation(
                    attribute=violation.policy.attribute,
                    reason=violation.reason,
                    user_id=user_id,
                    capability_id=decision.capability_id,
                    policy_id=violation.policy.id,
                    operator=violation.policy.operator,
                    expected_value=violation.policy.value,
                    actual_value=None if violation.actual is None else str(violation.actual),
                    request_data=_request_data(method, path, action),
                )
            except AuditWriteError:
                logger.exception(f"Could not record policy violation for {method} {path}")

        try:
            self.recorder.record_access(
                path=path,
                allowed=decision.allowed,
                method=method,
                user_id=user_id,
                role_id=decision.role_id,
                capability_id=decision.capability_id,
                reason=decision.reason.value,
            )
        except AuditWriteError:
            logger.exception(f"Could not record access log for {method} {path}")


def _actor_id(actor: Any) -> Optional[int]:
    if isinstance(actor, Actor):
        return actor.id
    return None


def _request_data(method: Optional[str], path: str, action: Action) -> Dict[str, Any]:
    return {"method": method, "path": path, "action": action.value}
