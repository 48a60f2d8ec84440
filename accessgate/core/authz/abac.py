"""Attribute-based evaluation of the policies bound to a capability.

A policy is a predicate ``<actor attribute> <operator> <value>``. Every
policy bound to a capability must hold (logical AND); a capability without
policies is allowed.

Operators:
  ==, !=            string equality / inequality
  >, <, >=, <=      integer comparison (e.g. level >= 3)
  in, not_in        membership in a comma-separated list ("Jakarta,Bandung")
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Tuple

from .actor import ActorAttributes

logger = logging.getLogger(__name__)


class PolicyOperator(str, Enum):
    """Comparison operators supported by attribute policies."""
    EQUALS = "=="
    NOT_EQUALS = "!="
    GREATER_THAN = ">"
    LESS_THAN = "<"
    GREATER_THAN_OR_EQUAL = ">="
    LESS_THAN_OR_EQUAL = "<="
    IN = "in"
    NOT_IN = "not_in"


NUMERIC_OPERATORS = frozenset([
    PolicyOperator.GREATER_THAN,
    PolicyOperator.LESS_THAN,
    PolicyOperator.GREATER_THAN_OR_EQUAL,
    PolicyOperator.LESS_THAN_OR_EQUAL,
])


@dataclass(frozen=True)
class PolicyRecord:
    """Read-only snapshot of an attribute policy."""
    id: int
    capability_id: int
    attribute: str
    operator: str
    value: str

    def describe(self) -> str:
        return f"{self.attribute} {self.operator} {self.value}"


@dataclass(frozen=True)
class PolicyFailure:
    """A policy that did not hold, with the value the actor presented."""
    policy: PolicyRecord
    actual: Any
    reason: str

    @property
    def attribute(self) -> str:
        return self.policy.attribute

    def to_dict(self) -> dict:
        return {
            "policy_id": self.policy.id,
            "attribute": self.policy.attribute,
            "operator": self.policy.operator,
            "expected": self.policy.value,
            "actual": None if self.actual is None else str(self.actual),
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ABACResult:
    """Outcome of the attribute stage."""
    allowed: bool
    failures: Tuple[PolicyFailure, ...] = ()
    evaluated: int = 0

    @property
    def failure(self) -> Optional[PolicyFailure]:
        """The first failing policy; this is the one recorded as the violation."""
        return self.failures[0] if self.failures else None


def parse_list_value(value: str) -> List[str]:
    """
    Parse the right-hand side of ``in`` / ``not_in``.

    Accepts a comma-separated list; a JSON array string is also accepted.
    """
    text = value.strip()
    if text.startswith("["):
        try:
            items = json.loads(text)
        except ValueError:
            items = None
        if isinstance(items, list):
            return [str(item).strip() for item in items]
    return [item.strip() for item in text.split(",") if item.strip()]


def _to_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def compare(actual: Any, operator: str, expected: str) -> Tuple[bool, Optional[str]]:
    """
    Compare an actor attribute value against a policy value.

    Returns:
        Tuple of (passed, failure reason)
    """
    try:
        op = PolicyOperator(operator)
    except ValueError:
        return False, f"Unknown operator: {operator}"

    if op is PolicyOperator.EQUALS:
        return str(actual) == expected, None
    if op is PolicyOperator.NOT_EQUALS:
        return str(actual) != expected, None

    if op in NUMERIC_OPERATORS:
        left, right = _to_int(actual), _to_int(expected)
        if left is None or right is None:
            return False, f"Cannot compare non-numeric values: {actual!r} {op.value} {expected!r}"
        if op is PolicyOperator.GREATER_THAN:
            return left > right, None
        if op is PolicyOperator.LESS_THAN:
            return left < right, None
        if op is PolicyOperator.GREATER_THAN_OR_EQUAL:
            return left >= right, None
        return left <= right, None

    members = parse_list_value(expected)
    if op is PolicyOperator.IN:
        return str(actual) in members, None
    return str(actual) not in members, None


def evaluate_policy(policy: PolicyRecord, attributes: ActorAttributes) -> Optional[PolicyFailure]:
    """Evaluate one policy. Returns None when it holds."""
    actual = attributes.get(policy.attribute)
    if actual is None:
        return PolicyFailure(
            policy=policy,
            actual=None,
            reason=f"Actor lacks attribute '{policy.attribute}'",
        )

    passed, error = compare(actual, policy.operator, policy.value)
    if passed:
        return None
    return PolicyFailure(
        policy=policy,
        actual=actual,
        reason=error or f"Value '{actual}' does not satisfy '{policy.describe()}'",
    )


class ABACEvaluator:
    """Checks an actor's attributes against a capability's policies."""

    def __init__(self, store):
        self.store = store

    def evaluate(self, attributes: ActorAttributes, capability_id: int) -> ABACResult:
        """
        Evaluate policies in registration order, stopping at the first failure.

        Raises:
            StorageError: policies could not be read
        """
        policies = self.store.get_policies(capability_id)
        for index, policy in enumerate(policies, start=1):
            failure = evaluate_policy(policy, attributes)
            if failure is not None:
                logger.debug(f"Policy {policy.id} failed on capability {capability_id}: {failure.reason}")
                return ABACResult(allowed=False, failures=(failure,), evaluated=index)
        return ABACResult(allowed=True, evaluated=len(policies))

    def evaluate_all(self, attributes: ActorAttributes, capability_id: int) -> ABACResult:
        """Evaluate every policy and report all failures. Used for explanations."""
        policies = self.store.get_policies(capability_id)
        failures = tuple(
            f for f in (evaluate_policy(p, attributes) for p in policies) if f is not None
        )
        return ABACResult(allowed=not failures, failures=failures, evaluated=len(policies))
