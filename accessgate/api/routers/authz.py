"""Authorization introspection endpoints."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from accessgate.api.deps import AuthorizationDependency, get_current_actor, get_engine, get_store
from accessgate.core.authz import Action, Actor, AuthorizationEngine, RBACEvaluator, StorageError
from accessgate.db.store import PermissionStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/authz",
    tags=["authz"],
    dependencies=[Depends(AuthorizationDependency())],
)


# Schemas
class EffectivePermissionResponse(BaseModel):
    capability_id: int
    capability_name: str
    can_create: bool
    can_read: bool
    can_update: bool
    can_delete: bool


class PermissionsResponse(BaseModel):
    user_id: int
    role_ids: List[int]
    permissions: List[EffectivePermissionResponse]


class ExplainRequest(BaseModel):
    method: str = Field(..., min_length=1, max_length=10)
    path: str = Field(..., min_length=1, max_length=255)
    action: Optional[Action] = None
    user_id: Optional[int] = None  # defaults to the current actor


def _require_actor(actor: Optional[Actor]) -> Actor:
    # Excluded paths reach the endpoint without an authorization decision
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return actor


# Endpoints
@router.get("/permissions", response_model=PermissionsResponse)
def get_my_permissions(
    actor: Optional[Actor] = Depends(get_current_actor),
    store: PermissionStore = Depends(get_store),
):
    """Effective per-capability permissions of the current actor."""
    actor = _require_actor(actor)
    permissions = RBACEvaluator(store).effective_permissions(actor.role_ids)
    return PermissionsResponse(
        user_id=actor.id,
        role_ids=sorted(actor.role_ids),
        permissions=[
            EffectivePermissionResponse(
                capability_id=p.capability_id,
                capability_name=p.capability_name,
                can_create=p.can_create,
                can_read=p.can_read,
                can_update=p.can_update,
                can_delete=p.can_delete,
            )
            for p in permissions
        ],
    )


@router.post("/explain")
def explain_decision(
    body: ExplainRequest,
    actor: Optional[Actor] = Depends(get_current_actor),
    store: PermissionStore = Depends(get_store),
    engine: AuthorizationEngine = Depends(get_engine),
):
    """
    Dry-run an authorization decision without writing to the audit trail.

    Lists every failing policy, not only the first.
    """
    actor = _require_actor(actor)
    subject = actor
    if body.user_id is not None and body.user_id != actor.id:
        try:
            subject = store.load_actor(body.user_id)
        except StorageError:
            logger.exception(f"Could not load actor for user {body.user_id}")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Authorization storage unavailable",
            )
        if subject is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"User {body.user_id} not found",
            )

    return engine.explain(subject, body.method, body.path, body.action).to_dict()
