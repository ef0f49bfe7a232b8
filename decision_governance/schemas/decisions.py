from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from decision_governance.authority.roles import DecisionType
from decision_governance.models.decisions import (
    DecisionStatus,
    EvidenceAction,
    RequiredAuthority,
    RiskLevel,
)


class DecisionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    decision_id: str
    entity_id: int | None
    group_id: int | None
    type: DecisionType
    subject: str
    policy_code: str
    risk: RiskLevel
    required_authority: RequiredAuthority
    status: DecisionStatus
    sla_deadline: datetime
    amount: str | None
    beneficiary: str | None
    context: str | None
    group_context: str | None
    decided_at: datetime | None
    decided_by: str | None
    justification: str | None
    execution_ref: str | None
    created_at: datetime
    updated_at: datetime


class EvidencePackOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    evidence_id: str
    decision_id: str
    actor_id: int
    actor_name: str
    actor_role: str
    action: EvidenceAction
    justification: str
    policy_snapshot: str
    policy_text: str | None
    merkle_hash: str
    ledger_id: str | None
    execution_ref: str | None
    dual_control_required: bool
    escalation_triggered: bool
    authority_matrix_version: str
    authority_matrix_hash: str
    created_at: datetime


class PolicyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    name: str
    description: str | None
    required_authority: RequiredAuthority
    risk_level: RiskLevel
    version: str
    is_active: bool


class ActionIn(BaseModel):
    # Length is validated after trimming by the state machine, not here,
    # so short input surfaces as the governance ValidationError.
    justification: str = Field(default="")


class ActionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    decision_id: str
    status: DecisionStatus
    evidence_id: str
    merkle_hash: str
    execution_ref: str | None = None
    escalation_roles: list[str] = Field(default_factory=list)


class AuthorityCheckOut(BaseModel):
    role: str
    decision_type: str
    has_authority: bool
    requires_dual_control: bool
    escalation_roles: list[str]


class DecisionCreateIn(BaseModel):
    type: DecisionType
    subject: str
    policy_code: str
    risk: RiskLevel
    required_authority: RequiredAuthority
    # Range is checked by the service so it surfaces as a governance ValidationError.
    sla_minutes: int = 60
    entity_id: int | None = None
    amount: str | None = None
    beneficiary: str | None = None
    context: str | None = None


class DecisionCreatedOut(BaseModel):
    success: bool = True
    decision_id: str


class EvidenceVerificationOut(BaseModel):
    evidence_id: str
    decision_id: str
    merkle_hash: str
    verified: bool
