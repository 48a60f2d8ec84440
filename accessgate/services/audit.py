"""Audit trail service.

``AuditRecorder`` appends access log and policy violation entries, one
commit per entry. ``AuditQuery`` serves the read side for audit-viewing
surfaces. Entries are never updated or deleted here; the models refuse it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from accessgate.core.authz.errors import AuditWriteError
from accessgate.db.models import AccessLog, DecisionOutcome, PolicyViolation

logger = logging.getLogger(__name__)


class AuditRecorder:
    """Writes audit entries through a request-scoped session."""

    def __init__(self, db: Session):
        self.db = db

    def _persist(self, entry, entry_type: str):
        try:
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError as e:
            try:
                self.db.rollback()
            except SQLAlchemyError:
                logger.exception(f"Rollback failed after {entry_type} write")
            raise AuditWriteError(entry_type, e) from e
        return entry

    def record_access(
        self,
        path: str,
        allowed: bool,
        *,
        method: Optional[str] = None,
        user_id: Optional[int] = None,
        role_id: Optional[int] = None,
        capability_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> AccessLog:
        """
        Append one access log entry.

        Raises:
            AuditWriteError: the entry could not be committed
        """
        entry = AccessLog.create_entry(
            path,
            DecisionOutcome.ALLOW if allowed else DecisionOutcome.DENY,
            method=method,
            user_id=user_id,
            role_id=role_id,
            capability_id=capability_id,
            reason=reason,
        )
        return self._persist(entry, "access log")

    def record_violation(
        self,
        attribute: str,
        reason: str,
        *,
        user_id: Optional[int] = None,
        capability_id: Optional[int] = None,
        policy_id: Optional[int] = None,
        operator: Optional[str] = None,
        expected_value: Optional[str] = None,
        actual_value: Optional[str] = None,
        request_data: Optional[Dict[str, Any]] = None,
    ) -> PolicyViolation:
        """
        Append one policy violation entry.

        Raises:
            AuditWriteError: the entry could not be committed
        """
        entry = PolicyViolation.create_entry(
            attribute,
            reason,
            user_id=user_id,
            capability_id=capability_id,
            policy_id=policy_id,
            operator=operator,
            expected_value=expected_value,
            actual_value=actual_value,
            request_data=request_data,
        )
        return self._persist(entry, "policy violation")


@dataclass
class AuditFilters:
    """Optional filters shared by the audit listings."""
    user_id: Optional[int] = None
    capability_id: Optional[int] = None
    decision: Optional[str] = None     # access logs only
    attribute: Optional[str] = None    # policy violations only
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class AuditQuery:
    """Read-only, newest-first listings of the audit trail."""

    def __init__(self, db: Session):
        self.db = db

    def list_access_logs(
        self,
        filters: Optional[AuditFilters] = None,
        page: int = 1,
        per_page: int = 50,
    ) -> Tuple[List[AccessLog], int]:
        filters = filters or AuditFilters()
        query = self.db.query(AccessLog)

        if filters.user_id is not None:
            query = query.filter(AccessLog.user_id == filters.user_id)
        if filters.capability_id is not None:
            query = query.filter(AccessLog.capability_id == filters.capability_id)
        if filters.decision:
            query = query.filter(AccessLog.decision == filters.decision)
        if filters.start_date:
            query = query.filter(AccessLog.created_at >= filters.start_date)
        if filters.end_date:
            query = query.filter(AccessLog.created_at <= filters.end_date)

        total = query.count()
        items = (
            query.order_by(AccessLog.created_at.desc(), AccessLog.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return items, total

    def list_policy_violations(
        self,
        filters: Optional[AuditFilters] = None,
        page: int = 1,
        per_page: int = 50,
    ) -> Tuple[List[PolicyViolation], int]:
        filters = filters or AuditFilters()
        query = self.db.query(PolicyViolation)

        if filters.user_id is not None:
            query = query.filter(PolicyViolation.user_id == filters.user_id)
        if filters.capability_id is not None:
            query = query.filter(PolicyViolation.capability_id == filters.capability_id)
        if filters.attribute:
            query = query.filter(PolicyViolation.attribute == filters.attribute)
        if filters.start_date:
            query = query.filter(PolicyViolation.created_at >= filters.start_date)
        if filters.end_date:
            query = query.filter(PolicyViolation.created_at <= filters.end_date)

        total = query.count()
        items = (
            query.order_by(PolicyViolation.created_at.desc(), PolicyViolation.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return items, total
