import logging
from typing import Generator, Optional, Union

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from accessgate.core.config import Settings, get_settings
from accessgate.core.authz import Action, Actor, AuthorizationEngine, Decision, DecisionReason, StorageError
from accessgate.db.session import SessionLocal
from accessgate.db.store import PermissionStore
from accessgate.services.audit import AuditRecorder

logger = logging.getLogger(__name__)


def get_db() -> Generator:
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_store(db: Session = Depends(get_db)) -> PermissionStore:
    return PermissionStore(db)


def get_engine(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> AuthorizationEngine:
    """Request-scoped engine writing its audit trail through the same session."""
    return AuthorizationEngine(
        PermissionStore(db),
        AuditRecorder(db),
        unmapped_route_policy=settings.unmapped_route_policy,
    )


def get_current_actor(
    request: Request,
    store: PermissionStore = Depends(get_store),
) -> Optional[Actor]:
    """
    Actor for the current request.

    The authentication layer places either a built ``Actor`` on
    ``request.state.actor`` or an authenticated ``request.state.user_id``.
    Returns None when neither is present; the engine denies such requests.
    """
    actor = getattr(request.state, "actor", None)
    if isinstance(actor, Actor):
        return actor

    user_id = getattr(request.state, "user_id", None)
    if user_id is None:
        return None

    try:
        return store.load_actor(int(user_id))
    except StorageError:
        logger.exception(f"Could not load actor for user {user_id}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authorization storage unavailable",
        )


class AuthorizationDependency:
    """
    FastAPI dependency that runs the authorization engine for the current route.

    Usage:
        router = APIRouter(dependencies=[Depends(AuthorizationDependency())])

        @router.post("/exports", dependencies=[Depends(AuthorizationDependency("read"))])
        async def export():
            ...

    The action is inferred from the HTTP method unless given. A missing or
    invalid actor maps to 401, any other denial to 403.
    """

    def __init__(self, action: Optional[Union[Action, str]] = None):
        self.action = Action(action) if action is not None else None

    def __call__(
        self,
        request: Request,
        actor: Optional[Actor] = Depends(get_current_actor),
        engine: AuthorizationEngine = Depends(get_engine),
        settings: Settings = Depends(get_settings),
    ) -> Optional[Decision]:
        path = request.url.path
        if path in settings.authz_excluded_paths_list:
            return None

        decision = engine.authorize(actor, request.method, path, self.action)
        request.state.decision = decision

        if decision.allowed:
            return decision

        if decision.reason is DecisionReason.INVALID_ACTOR:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
                headers={"WWW-Authenticate": "Bearer"},
            )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access denied: {decision.reason.value}",
        )
