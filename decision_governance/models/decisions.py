from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, ForeignKey, Integer, String, Text, event, inspect
from sqlalchemy.orm import Mapped, mapped_column

from decision_governance.authority.roles import DecisionType
from decision_governance.db.base import Base, utcnow
from decision_governance.errors import IntegrityError


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class RequiredAuthority(str, Enum):
    SUPERVISOR = "SUPERVISOR"
    COMPLIANCE = "COMPLIANCE"
    DUAL = "DUAL"
    PLATFORM_ADMIN = "PLATFORM_ADMIN"


class DecisionStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ESCALATED = "ESCALATED"
    EXECUTED = "EXECUTED"


class EvidenceAction(str, Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ESCALATED = "ESCALATED"


OUTCOME_FIELDS = ("decided_at", "decided_by", "justification")


class Policy(Base):
    __tablename__ = "policies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    required_authority: Mapped[RequiredAuthority] = mapped_column(
        SAEnum(RequiredAuthority, native_enum=False, length=16), nullable=False
    )
    risk_level: Mapped[RiskLevel] = mapped_column(
        SAEnum(RiskLevel, native_enum=False, length=16), default=RiskLevel.MEDIUM, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    version: Mapped[str] = mapped_column(String(16), default="1.0", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Decision(Base):
    """
    A governed request awaiting human authority.

    Status leaves PENDING exactly once, through a conditional update in
    `services.decision_actions`. Outcome fields are write-once; corrections
    are new decisions, never edits.
    """

    __tablename__ = "decisions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    decision_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)

    # Null entity_id = platform-level decision with no entity anchor.
    entity_id: Mapped[int | None] = mapped_column(ForeignKey("entities.id"), nullable=True, index=True)
    group_id: Mapped[int | None] = mapped_column(ForeignKey("groups.id"), nullable=True, index=True)

    type: Mapped[DecisionType] = mapped_column(SAEnum(DecisionType, native_enum=False, length=32), nullable=False)
    subject: Mapped[str] = mapped_column(String(512), nullable=False)
    policy_code: Mapped[str] = mapped_column(String(32), nullable=False)
    risk: Mapped[RiskLevel] = mapped_column(SAEnum(RiskLevel, native_enum=False, length=16), nullable=False)
    required_authority: Mapped[RequiredAuthority] = mapped_column(
        SAEnum(RequiredAuthority, native_enum=False, length=16), nullable=False
    )
    status: Mapped[DecisionStatus] = mapped_column(
        SAEnum(DecisionStatus, native_enum=False, length=16),
        default=DecisionStatus.PENDING,
        nullable=False,
        index=True,
    )
    sla_deadline: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    amount: Mapped[str | None] = mapped_column(String(64), nullable=True)
    beneficiary: Mapped[str | None] = mapped_column(String(256), nullable=True)
    context: Mapped[str | None] = mapped_column(Text, nullable=True)
    # JSON text describing the target of a GROUP_* decision.
    group_context: Mapped[str | None] = mapped_column(Text, nullable=True)

    decided_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    decided_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    justification: Mapped[str | None] = mapped_column(Text, nullable=True)
    execution_ref: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class EvidencePack(Base):
    """Immutable, hashed record of one decision transition. Append-only."""

    __tablename__ = "evidence_packs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    evidence_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    decision_id: Mapped[str] = mapped_column(ForeignKey("decisions.decision_id"), nullable=False, index=True)

    actor_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    actor_name: Mapped[str] = mapped_column(String(256), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[EvidenceAction] = mapped_column(SAEnum(EvidenceAction, native_enum=False, length=16), nullable=False)
    justification: Mapped[str] = mapped_column(Text, nullable=False)

    # Copied at action time, e.g. "PAY-004 v2.1"; never a live reference.
    policy_snapshot: Mapped[str] = mapped_column(String(64), nullable=False)
    policy_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    merkle_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    ledger_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    execution_ref: Mapped[str | None] = mapped_column(String(64), nullable=True)
    dual_control_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    escalation_triggered: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    authority_matrix_version: Mapped[str] = mapped_column(String(32), nullable=False)
    authority_matrix_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


@event.listens_for(EvidencePack, "before_update")
def _reject_evidence_update(mapper, connection, target: EvidencePack) -> None:
    raise IntegrityError(f"Evidence pack {target.evidence_id} is immutable and cannot be updated.")


@event.listens_for(EvidencePack, "before_delete")
def _reject_evidence_delete(mapper, connection, target: EvidencePack) -> None:
    raise IntegrityError(f"Evidence pack {target.evidence_id} is append-only and cannot be deleted.")


@event.listens_for(Decision, "before_update")
def _outcome_fields_are_write_once(mapper, connection, target: Decision) -> None:
    state = inspect(target)
    for name in OUTCOME_FIELDS:
        history = state.attrs[name].history
        if history.has_changes() and any(old is not None for old in history.deleted):
            raise IntegrityError(
                f"Decision {target.decision_id} outcome field {name!r} is already recorded and cannot be changed."
            )
