"""The authenticated actor evaluated by the engine."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, FrozenSet, Iterable

from .errors import InvalidActorError

STANDARD_ATTRIBUTES = ("department", "region", "level")


@dataclass(frozen=True)
class ActorAttributes:
    """Attribute values used by ABAC policies. Missing values are None."""
    department: Optional[str] = None
    region: Optional[str] = None
    level: Optional[int] = None
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def get(self, name: str) -> Any:
        """Return the value of a named attribute, or None if the actor lacks it."""
        if name in STANDARD_ATTRIBUTES:
            return getattr(self, name)
        return self.extra.get(name)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ActorAttributes":
        extra = {k: v for k, v in data.items() if k not in STANDARD_ATTRIBUTES}
        return cls(
            department=data.get("department"),
            region=data.get("region"),
            level=data.get("level"),
            extra=MappingProxyType(extra),
        )

    def to_dict(self) -> dict:
        data = {name: getattr(self, name) for name in STANDARD_ATTRIBUTES}
        data.update(self.extra)
        return data


@dataclass(frozen=True)
class Actor:
    """
    Authenticated caller, built once per request by the authentication layer.

    Immutable for the duration of an evaluation.
    """
    id: int
    role_ids: FrozenSet[int]
    attributes: ActorAttributes = field(default_factory=ActorAttributes)

    @classmethod
    def build(
        cls,
        actor_id: int,
        role_ids: Iterable[int],
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> "Actor":
        return cls(
            id=actor_id,
            role_ids=frozenset(role_ids),
            attributes=ActorAttributes.from_dict(attributes or {}),
        )


def validate_actor(actor: Any) -> Actor:
    """
    Check that an object can be evaluated as an actor.

    Raises:
        InvalidActorError: actor is None, has no id, or has no role set
    """
    if actor is None:
        raise InvalidActorError("No actor supplied")
    if not isinstance(actor, Actor):
        raise InvalidActorError(f"Unsupported actor type: {type(actor).__name__}")
    if actor.id is None:
        raise InvalidActorError("Actor has no id")
    if actor.role_ids is None:
        raise InvalidActorError(f"Actor {actor.id} has no role set")
    return actor
