"""Tests for the HTTP surface: health, authorization dependency, audit and authz routers."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from accessgate.api.deps import get_store
from accessgate.core.authz import AuthorizationEngine, StorageError
from accessgate.core.config import Settings, get_settings
from accessgate.db.models import AccessLog, PolicyViolation, RouteBinding
from accessgate.db.store import PermissionStore
from accessgate.services.audit import AuditRecorder
from tests.factories import (
    create_binding,
    create_capability,
    create_grant,
    create_policy,
    create_role,
    create_user,
)

pytestmark = pytest.mark.integration


@pytest.fixture
def seeded(db_session):
    audit = create_capability(db_session, name="audit")
    authz = create_capability(db_session, name="authz")
    reports = create_capability(db_session, name="reports")

    auditor_role = create_role(db_session, name="auditor")
    manager_role = create_role(db_session, name="regional_manager")
    create_grant(db_session, auditor_role, audit, read=True)
    create_grant(db_session, auditor_role, authz, read=True, create=True)
    create_grant(db_session, manager_role, reports, read=True)
    create_grant(db_session, manager_role, authz, read=True)
    create_policy(db_session, reports, "region", "==", "Jakarta")

    create_binding(db_session, "/api/audit/access-logs", audit, method="GET")
    create_binding(db_session, "/api/audit/policy-violations", audit, method="GET")
    create_binding(db_session, "/api/authz/permissions", authz, method="GET")
    create_binding(db_session, "/api/authz/explain", authz, method="POST")
    create_binding(db_session, "/api/reports", reports, method="GET")

    auditor = create_user(db_session, region="Jakarta", roles=[auditor_role])
    manager = create_user(db_session, region="Bandung", roles=[manager_role])
    db_session.commit()

    store = PermissionStore(db_session)
    return {
        "auditor": store.load_actor(auditor.id),
        "manager": store.load_actor(manager.id),
        "manager_id": manager.id,
    }


class TestHealthEndpoints:

    def test_basic_health_check(self, client: TestClient):
        """/health needs no actor."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data
        assert "timestamp" in data

    def test_readiness_probe(self, client: TestClient):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["checks"]["database"]["status"] == "healthy"


class TestAuthorizationDependency:

    def test_missing_actor_is_401(self, client: TestClient, seeded, db_session):
        response = client.get("/api/audit/access-logs")

        assert response.status_code == 401
        log = db_session.query(AccessLog).one()
        assert log.reason == "invalid_actor"

    def test_insufficient_permission_is_403(self, client: TestClient, seeded, current_actor):
        current_actor.actor = seeded["manager"]

        response = client.get("/api/audit/access-logs")

        assert response.status_code == 403
        assert "insufficient_permission" in response.json()["detail"]

    def test_unmapped_route_is_403(self, client: TestClient, seeded, current_actor, db_session):
        db_session.query(RouteBinding).filter(RouteBinding.path == "/api/authz/permissions").delete()
        db_session.commit()
        current_actor.actor = seeded["auditor"]

        response = client.get("/api/authz/permissions")

        assert response.status_code == 403
        assert "unmapped_route" in response.json()["detail"]
        log = db_session.query(AccessLog).one()
        assert log.capability_id is None

    def test_excluded_paths_skip_authorization(self, client: TestClient, seeded, current_actor, db_session):
        """Excluded paths are neither evaluated nor audited."""
        client.app.dependency_overrides[get_settings] = lambda: Settings(
            _env_file=None, authz_excluded_paths="/api/authz/permissions"
        )
        current_actor.actor = seeded["manager"]

        response = client.get("/api/authz/permissions")

        assert response.status_code == 200
        assert db_session.query(AccessLog).count() == 0


class TestAuditRouter:

    def test_list_access_logs(self, client: TestClient, seeded, current_actor):
        current_actor.actor = seeded["auditor"]

        response = client.get("/api/audit/access-logs")

        assert response.status_code == 200
        data = response.json()
        # The listing request itself is audited before the query runs
        assert data["total"] == 1
        assert data["items"][0]["path"] == "/api/audit/access-logs"
        assert data["items"][0]["decision"] == "allow"
        assert data["pages"] == 1

    def test_filter_by_decision(self, client: TestClient, seeded, current_actor):
        current_actor.actor = seeded["manager"]
        client.get("/api/audit/access-logs")  # denied
        current_actor.actor = seeded["auditor"]

        response = client.get("/api/audit/access-logs", params={"decision": "deny"})

        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["reason"] == "insufficient_permission"

    def test_invalid_decision_filter(self, client: TestClient, seeded, current_actor):
        current_actor.actor = seeded["auditor"]
        response = client.get("/api/audit/access-logs", params={"decision": "maybe"})
        assert response.status_code == 422

    def test_page_size_is_capped(self, client: TestClient, seeded, current_actor):
        client.app.dependency_overrides[get_settings] = lambda: Settings(_env_file=None, audit_page_size_max=2)
        current_actor.actor = seeded["auditor"]
        for _ in range(3):
            client.get("/api/audit/access-logs")

        response = client.get("/api/audit/access-logs", params={"per_page": 50})

        data = response.json()
        assert data["per_page"] == 2
        assert len(data["items"]) == 2
        assert data["total"] == 4

    def test_list_policy_violations(self, client: TestClient, seeded, current_actor, db_session):
        engine = AuthorizationEngine(PermissionStore(db_session), AuditRecorder(db_session))
        engine.authorize(seeded["manager"], "GET", "/api/reports")
        current_actor.actor = seeded["auditor"]

        response = client.get("/api/audit/policy-violations", params={"attribute": "region"})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        violation = data["items"][0]
        assert violation["user_id"] == seeded["manager_id"]
        assert violation["expected_value"] == "Jakarta"
        assert violation["actual_value"] == "Bandung"


class TestAuthzRouter:

    def test_my_permissions(self, client: TestClient, seeded, current_actor):
        current_actor.actor = seeded["auditor"]

        response = client.get("/api/authz/permissions")

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == seeded["auditor"].id
        names = {p["capability_name"]: p for p in data["permissions"]}
        assert set(names) == {"audit", "authz"}
        assert names["authz"]["can_create"] is True
        assert names["audit"]["can_delete"] is False

    def test_explain_for_other_user(self, client: TestClient, seeded, current_actor, db_session):
        current_actor.actor = seeded["auditor"]

        response = client.post("/api/authz/explain", json={
            "method": "GET",
            "path": "/api/reports",
            "user_id": seeded["manager_id"],
        })

        assert response.status_code == 200
        data = response.json()
        assert data["decision"]["allowed"] is False
        assert data["decision"]["reason"] == "policy_denied"
        assert data["policy_failures"][0]["attribute"] == "region"
        assert db_session.query(PolicyViolation).count() == 0

    def test_explain_unknown_user(self, client: TestClient, seeded, current_actor):
        current_actor.actor = seeded["auditor"]

        response = client.post("/api/authz/explain", json={"method": "GET", "path": "/api/reports", "user_id": 999})

        assert response.status_code == 404

    def test_explain_requires_create_permission(self, client: TestClient, seeded, current_actor):
        """Manager can read authz but not create, and explain is a POST."""
        current_actor.actor = seeded["manager"]

        response = client.post("/api/authz/explain", json={"method": "GET", "path": "/api/reports"})

        assert response.status_code == 403

    def test_explain_storage_failure_is_503(self, client: TestClient, seeded, current_actor):
        store = MagicMock()
        store.load_actor.side_effect = StorageError("load_actor", OperationalError("SELECT", {}, Exception("locked")))
        client.app.dependency_overrides[get_store] = lambda: store
        current_actor.actor = seeded["auditor"]

        response = client.post("/api/authz/explain", json={
            "method": "GET",
            "path": "/api/reports",
            "user_id": seeded["manager_id"],
        })

        assert response.status_code == 503
        store.load_actor.assert_called_once_with(seeded["manager_id"])
