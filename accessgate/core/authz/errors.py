"""Exception types raised by the authorization engine."""

from typing import Optional


class AuthorizationError(Exception):
    """Base class for engine errors."""


class StorageError(AuthorizationError):
    """The permission store could not be read or written.

    Fatal for the current ``authorize`` call, which then fails closed.
    """

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        message = f"Storage failure during {operation}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.operation = operation
        self.cause = cause


class InvalidActorError(AuthorizationError):
    """The actor reaching the engine is missing or malformed."""


class AuditWriteError(AuthorizationError):
    """An audit entry could not be persisted. Never changes a decision."""

    def __init__(self, entry_type: str, cause: Optional[BaseException] = None):
        super().__init__(f"Failed to write {entry_type}: {cause}")
        self.entry_type = entry_type
        self.cause = cause


class AmbiguousRouteError(AuthorizationError):
    """A route binding would overlap an existing parameterized binding."""

    def __init__(self, path: str, method: Optional[str], conflicting_path: str, conflicting_method: Optional[str]):
        super().__init__(
            f"Route {method or '*'} {path} overlaps existing binding "
            f"{conflicting_method or '*'} {conflicting_path}"
        )
        self.path = path
        self.method = method
        self.conflicting_path = conflicting_path
        self.conflicting_method = conflicting_method
