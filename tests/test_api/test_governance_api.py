"""
End-to-end tests through the FastAPI app.

The app's SessionLocal is pointed at the per-test in-memory database and the
real security_config.yaml is loaded, so the global security dependency, the
scope filters and the state machine all run as in production.
"""
from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from decision_governance.db import session as db_session_module
from decision_governance.main import create_app
from decision_governance.security.config import load_security_config

CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "security_config.yaml"


@pytest.fixture
def client(scenario, session_factory, monkeypatch):
    monkeypatch.setattr(db_session_module, "SessionLocal", session_factory)
    app = create_app()
    app.state.security_config = load_security_config(CONFIG_PATH)
    # No context manager: skip the lifespan so the file-backed DB is never touched.
    return TestClient(app)


def auth(user_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {user_id}"}


def test_health_is_public(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_matrix_endpoints_are_public(client):
    matrix = client.get("/authority/matrix").json()
    assert matrix["last_change_decision_id"] is None
    assert {r["decision_type"] for r in matrix["rules"]} >= {"PAYMENT", "POLICY_CHANGE"}

    visibility = client.get("/authority/visibility").json()
    assert visibility["Configuration"]["PLATFORM_ADMIN"] is True

    check = client.get("/authority/check", params={"role": "OPERATOR", "decision_type": "PAYMENT"}).json()
    assert check["has_authority"] is False
    check = client.get("/authority/check", params={"role": "COMPLIANCE", "decision_type": "AML_EXCEPTION"}).json()
    assert check["has_authority"] is True
    assert check["requires_dual_control"] is True
    assert check["escalation_roles"] == ["PLATFORM_ADMIN"]


def test_missing_token_is_401(client):
    assert client.get("/decisions").status_code == 401


def test_malformed_token_is_400(client):
    assert client.get("/decisions", headers={"Authorization": "Token 1"}).status_code == 400
    assert client.get("/decisions", headers={"Authorization": "Bearer abc"}).status_code == 400


def test_unknown_user_is_401(client):
    assert client.get("/decisions", headers=auth(9999)).status_code == 401


def test_me_context_shows_visible_and_actionable_entities(client, users):
    body = client.get("/me/context", headers=auth(users.group_only_supervisor)).json()

    assert body["platform_role"] == "SUPERVISOR"
    assert body["visible_entity_ids"] == [7, 9]
    assert body["actionable_entity_ids"] == []


def test_inbox_is_scoped_per_user(client, users):
    sam = {d["decision_id"] for d in client.get("/decisions", headers=auth(users.supervisor_approver)).json()}
    gail = {d["decision_id"] for d in client.get("/decisions", headers=auth(users.group_only_supervisor)).json()}
    admin = client.get("/decisions", headers=auth(users.platform_admin)).json()

    assert "DEC-2" not in sam
    assert {"DEC-2", "DEC-3"} <= gail
    assert "DEC-4" not in gail
    assert len(admin) == 8


def test_inbox_status_filter(client, users):
    body = client.get("/decisions", params={"status": "APPROVED"}, headers=auth(users.platform_admin)).json()
    assert [d["decision_id"] for d in body] == ["DEC-8"]


def test_out_of_scope_decision_is_404(client, users):
    response = client.get("/decisions/DEC-2", headers=auth(users.supervisor_approver))
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_operator_cannot_reach_decision_actions(client, users):
    response = client.post(
        "/decisions/DEC-1/approve",
        json={"justification": "Verified invoice against purchase order."},
        headers=auth(users.operator_approver),
    )
    assert response.status_code == 403
    assert "Decision Actions" in response.json()["detail"]


def test_approve_then_fetch_evidence(client, users):
    response = client.post(
        "/decisions/DEC-1/approve",
        json={"justification": "Verified invoice against purchase order."},
        headers=auth(users.supervisor_approver),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["status"] == "APPROVED"
    assert body["execution_ref"].startswith("PAY-")

    evidence = client.get(f"/evidence/{body['evidence_id']}", headers=auth(users.supervisor_approver)).json()
    assert evidence["merkle_hash"] == body["merkle_hash"]
    assert evidence["policy_snapshot"] == "PAY-004 v2.1"

    by_decision = client.get("/evidence/by-decision/DEC-1", headers=auth(users.supervisor_approver)).json()
    assert by_decision["evidence_id"] == body["evidence_id"]

    decision = client.get("/decisions/DEC-1", headers=auth(users.supervisor_approver)).json()
    assert decision["status"] == "APPROVED"
    assert decision["decided_by"] == "sam@example.com"


def test_group_scope_approval_is_refused_with_reason(client, users):
    response = client.post(
        "/decisions/DEC-1/approve",
        json={"justification": "Verified invoice against purchase order."},
        headers=auth(users.group_only_supervisor),
    )
    assert response.status_code == 403
    body = response.json()
    assert body["error"] == "authority_error"
    assert "Group scope does not grant entity authority" in body["detail"]


def test_short_justification_is_422(client, users):
    response = client.post(
        "/decisions/DEC-1/reject",
        json={"justification": "no"},
        headers=auth(users.supervisor_approver),
    )
    assert response.status_code == 422
    assert response.json() == {"error": "validation_error", "detail": "Justification required, min 10 characters."}


def test_double_approval_is_409(client, users):
    payload = {"justification": "Verified invoice against purchase order."}
    first = client.post("/decisions/DEC-1/approve", json=payload, headers=auth(users.supervisor_approver))
    second = client.post("/decisions/DEC-1/approve", json=payload, headers=auth(users.supervisor_approver))

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["error"] == "invalid_state"


def test_operator_can_escalate_in_scope(client, users):
    response = client.post(
        "/decisions/DEC-1/escalate",
        json={"justification": "Amount looks unusual for this vendor."},
        headers=auth(users.operator_approver),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "ESCALATED"


def test_configuration_area_is_admin_only(client, users):
    assert client.get("/policies", headers=auth(users.compliance_admin)).status_code == 403
    policies = client.get("/policies", headers=auth(users.platform_admin))
    assert policies.status_code == 200
    assert "PAY-004" in {p["code"] for p in policies.json()}
    assert client.get("/policies/PAY-004", headers=auth(users.platform_admin)).json()["version"] == "2.1"


def test_governance_history_uses_decorator_area(client, users):
    assert client.get("/authority/governance-history", headers=auth(users.supervisor_approver)).status_code == 403

    response = client.get("/authority/governance-history", headers=auth(users.platform_admin))
    assert response.status_code == 200
    assert [h["decision_id"] for h in response.json()] == ["DEC-5"]


def test_evidence_area_hidden_from_operator(client, users):
    assert client.get("/evidence", headers=auth(users.operator_approver)).status_code == 403
    assert client.get("/evidence", headers=auth(users.supervisor_approver)).json() == []


def test_me_context_carries_role_label(client, users):
    body = client.get("/me/context", headers=auth(users.platform_admin)).json()
    assert body["platform_role"] == "PLATFORM_ADMIN"
    assert body["platform_role_label"] == "Admin"


def test_authority_check_accepts_legacy_role_names(client):
    body = client.get("/authority/check", params={"role": "supervisor", "decision_type": "PAYMENT"}).json()
    assert body["role"] == "SUPERVISOR"
    assert body["has_authority"] is True


def test_authority_check_rejects_unknown_role_and_type(client):
    response = client.get("/authority/check", params={"role": "superuser", "decision_type": "PAYMENT"})
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "validation_error"
    assert "OPERATOR, SUPERVISOR, COMPLIANCE, PLATFORM_ADMIN" in body["detail"]

    response = client.get("/authority/check", params={"role": "SUPERVISOR", "decision_type": "REFUND"})
    assert response.status_code == 422
    assert "PAYMENT" in response.json()["detail"]


def test_matrix_rules_carry_labels(client):
    rules = {r["decision_type"]: r for r in client.get("/authority/matrix").json()["rules"]}
    assert rules["AML_EXCEPTION"]["label"] == "AML Exception"


def test_evidence_verification_endpoint(client, users):
    approved = client.post(
        "/decisions/DEC-1/approve",
        json={"justification": "Verified invoice against purchase order."},
        headers=auth(users.supervisor_approver),
    ).json()

    response = client.get(f"/evidence/{approved['evidence_id']}/verify", headers=auth(users.supervisor_approver))
    assert response.status_code == 200
    assert response.json() == {
        "evidence_id": approved["evidence_id"],
        "decision_id": "DEC-1",
        "merkle_hash": approved["merkle_hash"],
        "verified": True,
    }

    assert client.get(f"/evidence/{approved['evidence_id']}/verify", headers=auth(users.operator_approver)).status_code == 403
    assert client.get("/evidence/EVD-2026-NOPE00/verify", headers=auth(users.supervisor_approver)).status_code == 404


def test_create_decision_then_read_it_back(client, users):
    payload = {
        "type": "PAYMENT",
        "subject": "Pay Acme Corp invoice 4471",
        "policy_code": "PAY-004",
        "risk": "HIGH",
        "required_authority": "SUPERVISOR",
        "sla_minutes": 120,
        "entity_id": 7,
        "amount": "$30,000 AUD",
    }
    response = client.post("/decisions", json=payload, headers=auth(users.supervisor_approver))
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True

    decision = client.get(f"/decisions/{body['decision_id']}", headers=auth(users.supervisor_approver)).json()
    assert decision["status"] == "PENDING"
    assert decision["amount"] == "$30,000 AUD"


def test_create_decision_validation_errors(client, users):
    payload = {
        "type": "PAYMENT",
        "subject": "Pay Acme",
        "policy_code": "PAY-004",
        "risk": "HIGH",
        "required_authority": "SUPERVISOR",
        "entity_id": 7,
    }
    response = client.post("/decisions", json=payload, headers=auth(users.supervisor_approver))
    assert response.status_code == 422
    assert response.json() == {"error": "validation_error", "detail": "Subject required, min 10 characters."}

    payload.update(subject="Pay Acme Corp invoice 4471", sla_minutes=2000)
    response = client.post("/decisions", json=payload, headers=auth(users.supervisor_approver))
    assert response.status_code == 422
    assert response.json()["detail"] == "SLA must be between 1 and 1440 minutes."


def test_entities_are_scoped(client, users):
    assert [e["id"] for e in client.get("/entities", headers=auth(users.supervisor_approver)).json()] == [7]
    assert client.get("/entities/9", headers=auth(users.supervisor_approver)).status_code == 404
    assert client.get("/entities/9", headers=auth(users.group_only_supervisor)).json()["entity_ref"] == "ENT-NINE"


def test_group_reads(client, users):
    assert client.get("/groups", headers=auth(users.supervisor_approver)).json() == []
    assert client.get("/groups/1", headers=auth(users.supervisor_approver)).status_code == 404

    groups = client.get("/groups", headers=auth(users.group_only_supervisor)).json()
    assert [g["name"] for g in groups] == ["Group One"]

    members = client.get("/groups/1/members", headers=auth(users.group_only_supervisor)).json()
    assert sorted(m["entity"]["id"] for m in members) == [7, 9]
    assert {m["membership_status"] for m in members} == {"ACTIVE"}


def test_group_change_request_is_admin_only(client, users):
    payload = {"entity_id": 11, "reason": "Acquired by the group in March."}

    assert client.post("/groups/1/add-entity", json=payload, headers=auth(users.compliance_admin)).status_code == 403

    response = client.post("/groups/1/add-entity", json=payload, headers=auth(users.platform_admin))
    assert response.status_code == 201
    decision_id = response.json()["decision_id"]

    decision = client.get(f"/decisions/{decision_id}", headers=auth(users.platform_admin)).json()
    assert decision["type"] == "GROUP_ADD_ENTITY"
    assert decision["status"] == "PENDING"
    assert decision["policy_code"] == "GRP-002"

    approved = client.post(
        f"/decisions/{decision_id}/approve",
        json={"justification": "Membership change reviewed."},
        headers=auth(users.platform_admin),
    )
    assert approved.status_code == 200


def test_group_change_request_errors(client, users):
    short = client.post("/groups/1/remove-entity", json={"entity_id": 9, "reason": "no"}, headers=auth(users.platform_admin))
    assert short.status_code == 422

    missing = client.post(
        "/groups/99/remove-entity",
        json={"entity_id": 9, "reason": "Divested last quarter."},
        headers=auth(users.platform_admin),
    )
    assert missing.status_code == 404

    created = client.post("/groups", json={"name": "Pacific Group"}, headers=auth(users.platform_admin))
    assert created.status_code == 201
