"""Audit trail query API endpoints.

Read-only: access logs and policy violations are append-only and never
modified through the API.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from accessgate.api.deps import AuthorizationDependency, get_db
from accessgate.api.schemas.common import PaginatedResponse
from accessgate.core.config import Settings, get_settings
from accessgate.db.models import DecisionOutcome
from accessgate.services.audit import AuditFilters, AuditQuery

router = APIRouter(
    prefix="/audit",
    tags=["audit"],
    dependencies=[Depends(AuthorizationDependency())],
)


# Schemas
class AccessLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[int]
    role_id: Optional[int]
    capability_id: Optional[int]
    path: str
    method: Optional[str]
    decision: str
    reason: Optional[str]
    created_at: datetime


class PolicyViolationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[int]
    capability_id: Optional[int]
    policy_id: Optional[int]
    attribute: str
    operator: Optional[str]
    expected_value: Optional[str]
    actual_value: Optional[str]
    reason: str
    request_data: Optional[dict]
    created_at: datetime


# Endpoints
@router.get("/access-logs", response_model=PaginatedResponse[AccessLogResponse])
def list_access_logs(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1),
    user_id: Optional[int] = None,
    capability_id: Optional[int] = None,
    decision: Optional[DecisionOutcome] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
):
    """
    List access log entries, newest first.

    Supports filtering by user, capability, decision, and date range.
    """
    per_page = min(per_page, settings.audit_page_size_max)
    filters = AuditFilters(
        user_id=user_id,
        capability_id=capability_id,
        decision=decision.value if decision else None,
        start_date=start_date,
        end_date=end_date,
    )
    items, total = AuditQuery(db).list_access_logs(filters, page=page, per_page=per_page)
    return PaginatedResponse[AccessLogResponse].create(
        items=[AccessLogResponse.model_validate(item) for item in items],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/policy-violations", response_model=PaginatedResponse[PolicyViolationResponse])
def list_policy_violations(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1),
    user_id: Optional[int] = None,
    capability_id: Optional[int] = None,
    attribute: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
):
    """
    List policy violations, newest first.

    Supports filtering by user, capability, attribute, and date range.
    """
    per_page = min(per_page, settings.audit_page_size_max)
    filters = AuditFilters(
        user_id=user_id,
        capability_id=capability_id,
        attribute=attribute,
        start_date=start_date,
        end_date=end_date,
    )
    items, total = AuditQuery(db).list_policy_violations(filters, page=page, per_page=per_page)
    return PaginatedResponse[PolicyViolationResponse].create(
        items=[PolicyViolationResponse.model_validate(item) for item in items],
        total=total,
        page=page,
        per_page=per_page,
    )
