"""Route resolution: maps an inbound (method, path) to a capability.

Route bindings are stored with plain paths whose ``:name`` segments act as
parameters, e.g. ``/api/users/:id/roles``. Paths are tokenized into literal
and parameter segments and compared segment by segment; no regular
expressions are built from stored data.

Resolution order:
  1. Exact binding for (path, method), then an exact binding with no method
  2. Parameterized bindings for the method (or method-less), first registered wins
  3. Nothing matched: the route is unmapped
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

PARAM_PREFIX = ":"


class SegmentKind(str, Enum):
    LITERAL = "literal"
    PARAM = "param"


@dataclass(frozen=True)
class Segment:
    """One path segment of a route pattern."""
    kind: SegmentKind
    value: str  # literal text, or parameter name

    def matches(self, part: str) -> bool:
        if self.kind is SegmentKind.PARAM:
            # Exactly one non-empty segment
            return part != ""
        return part == self.value

    def overlaps(self, other: "Segment") -> bool:
        """True if some concrete segment matches both."""
        if self.kind is SegmentKind.PARAM or other.kind is SegmentKind.PARAM:
            return True
        return self.value == other.value


def split_path(path: str) -> Tuple[str, ...]:
    """Split a request path into segments, dropping query, fragment and edge slashes."""
    path = path.split("?", 1)[0].split("#", 1)[0]
    stripped = path.strip("/")
    if not stripped:
        return ()
    return tuple(stripped.split("/"))


def normalize_path(path: str) -> str:
    """Canonical form used for storage and exact lookups: leading slash, no trailing slash."""
    return "/" + "/".join(split_path(path))


def normalize_method(method: Optional[str]) -> Optional[str]:
    if method is None:
        return None
    method = method.strip().upper()
    if method in ("", "*", "ANY"):
        return None
    return method


def _tokenize(part: str) -> Segment:
    if part.startswith(PARAM_PREFIX) and len(part) > 1:
        return Segment(SegmentKind.PARAM, part[1:])
    return Segment(SegmentKind.LITERAL, part)


@dataclass(frozen=True)
class RoutePattern:
    """A tokenized route path."""
    raw: str
    segments: Tuple[Segment, ...]

    @classmethod
    def parse(cls, path: str) -> "RoutePattern":
        return cls(raw=path, segments=tuple(_tokenize(p) for p in split_path(path)))

    @property
    def is_parameterized(self) -> bool:
        return any(s.kind is SegmentKind.PARAM for s in self.segments)

    @property
    def param_names(self) -> List[str]:
        return [s.value for s in self.segments if s.kind is SegmentKind.PARAM]

    def match(self, path: str) -> Optional[Dict[str, str]]:
        """
        Match a concrete path against the whole pattern.

        Returns:
            Mapping of parameter name to the matched segment, or None
        """
        parts = split_path(path)
        if len(parts) != len(self.segments):
            return None

        params: Dict[str, str] = {}
        for segment, part in zip(self.segments, parts):
            if not segment.matches(part):
                return None
            if segment.kind is SegmentKind.PARAM:
                params[segment.value] = part
        return params

    def overlaps(self, other: "RoutePattern") -> bool:
        """True if at least one concrete path would match both patterns."""
        if len(self.segments) != len(other.segments):
            return False
        return all(a.overlaps(b) for a, b in zip(self.segments, other.segments))


@dataclass(frozen=True)
class RouteBindingRecord:
    """Read-only snapshot of a stored route binding."""
    id: int
    path: str
    method: Optional[str]
    capability_id: int

    @property
    def pattern(self) -> RoutePattern:
        return RoutePattern.parse(self.path)

    def accepts_method(self, method: Optional[str]) -> bool:
        bound = normalize_method(self.method)
        return bound is None or bound == normalize_method(method)


@dataclass(frozen=True)
class RouteMatch:
    """Result of a successful resolution."""
    binding: RouteBindingRecord
    exact: bool
    params: Dict[str, str] = field(default_factory=dict)

    @property
    def capability_id(self) -> int:
        return self.binding.capability_id


def methods_overlap(a: Optional[str], b: Optional[str]) -> bool:
    a, b = normalize_method(a), normalize_method(b)
    return a is None or b is None or a == b


def find_conflict(
    path: str,
    method: Optional[str],
    existing: Iterable[RouteBindingRecord],
) -> Optional[RouteBindingRecord]:
    """
    Find an existing binding that a new (path, method) binding would clash with.

    Two bindings clash when they are the same exact registration, or when both
    are parameterized, their methods overlap, and some concrete path matches
    both. A literal path never clashes with a pattern because exact matches
    are always tried first.
    """
    path = normalize_path(path)
    method = normalize_method(method)
    candidate = RoutePattern.parse(path)

    for binding in existing:
        bound_method = normalize_method(binding.method)
        if normalize_path(binding.path) == path and bound_method == method:
            return binding
        if not methods_overlap(bound_method, method):
            continue
        other = binding.pattern
        if candidate.is_parameterized and other.is_parameterized and candidate.overlaps(other):
            return binding
    return None


class RouteResolver:
    """
    Resolves a request to the capability bound to its route.

    Reads bindings from the permission store on every call; holds no state
    between calls.
    """

    def __init__(self, store):
        self.store = store

    def resolve(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Resolve (method, path) to a route binding.

        Raises:
            StorageError: bindings could not be read
        """
        method = normalize_method(method)
        path = normalize_path(path)

        exact = self.store.find_exact_binding(path, method)
        if exact is not None:
            return RouteMatch(binding=exact, exact=True)

        matches: List[Tuple[RouteBindingRecord, Dict[str, str]]] = []
        for binding in self.store.list_bindings(method):
            if not binding.accepts_method(method):
                continue
            params = binding.pattern.match(path)
            if params is not None:
                matches.append((binding, params))

        if not matches:
            return None

        if len(matches) > 1:
            logger.warning(
                f"Ambiguous route {method} {path}: matched "
                f"{', '.join(b.path for b, _ in matches)}; using {matches[0][0].path}"
            )

        binding, params = matches[0]
        return RouteMatch(binding=binding, exact=False, params=params)
