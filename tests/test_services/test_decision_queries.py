"""
Tests for read-side decision services (lists, policies, matrix summary).
"""
from __future__ import annotations

import pytest

from decision_governance.authority.matrix import AUTHORITY_MATRIX
from decision_governance.errors import NotFoundError
from decision_governance.models.decisions import DecisionStatus
from decision_governance.security.resolver import resolve_auth_context
from decision_governance.services.decision_actions import approve_decision
from decision_governance.services.decisions import (
    authority_matrix_summary,
    get_decision,
    get_policy,
    governance_history,
    list_decisions,
    list_policies,
)


def test_list_decisions_filters_by_status(scenario):
    pending = list_decisions(scenario, DecisionStatus.PENDING)
    approved = list_decisions(scenario, DecisionStatus.APPROVED)

    assert len(pending) == 7
    assert [d.decision_id for d in approved] == ["DEC-8"]


def test_out_of_scope_decision_reads_as_not_found(scenario, users):
    scenario.info["authz"] = resolve_auth_context(scenario, users.supervisor_approver)

    assert get_decision(scenario, "DEC-1").entity_id == 7
    with pytest.raises(NotFoundError):
        get_decision(scenario, "DEC-2")


def test_policies(scenario):
    assert [p.code for p in list_policies(scenario)] == ["AML-009", "GOV-001", "GRP-001", "GRP-002", "GRP-003", "PAY-004"]
    assert get_policy(scenario, "PAY-004").version == "2.1"
    with pytest.raises(NotFoundError):
        get_policy(scenario, "NOPE-1")


def test_matrix_summary_without_policy_change(scenario):
    summary = authority_matrix_summary(scenario)

    assert summary["version"] == AUTHORITY_MATRIX.version
    assert summary["hash"] == AUTHORITY_MATRIX.fingerprint()
    assert summary["last_change_decision_id"] is None
    assert summary["last_change_date"] is None


def test_matrix_summary_and_history_after_policy_change(scenario, users):
    admin = resolve_auth_context(scenario, users.platform_admin)
    result = approve_decision(scenario, "DEC-5", "Threshold change reviewed by board.", admin)

    summary = authority_matrix_summary(scenario)
    assert summary["last_change_decision_id"] == "DEC-5"
    assert summary["last_change_date"] is not None

    history = governance_history(scenario)
    assert len(history) == 1
    entry = history[0]
    assert entry["decision_id"] == "DEC-5"
    assert entry["status"] == "APPROVED"
    assert entry["approved_by"] == "alice@example.com"
    assert entry["evidence_id"] == result.evidence_id
    assert entry["evidence_hash"] == result.merkle_hash


def test_history_lists_pending_changes_without_evidence(scenario):
    history = governance_history(scenario, limit=5)
    assert [(h["decision_id"], h["evidence_id"]) for h in history] == [("DEC-5", None)]
