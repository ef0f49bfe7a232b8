from __future__ import annotations

from datetime import datetime, timedelta
import logging
import secrets
import string

from sqlalchemy import select
from sqlalchemy.orm import Session

from decision_governance.authority.matrix import AUTHORITY_MATRIX, AuthorityMatrix
from decision_governance.authority.roles import DecisionType, is_group_decision_type
from decision_governance.db.base import utcnow
from decision_governance.errors import AuthorityError, NotFoundError, ValidationError
from decision_governance.models.decisions import (
    Decision,
    DecisionStatus,
    EvidencePack,
    Policy,
    RequiredAuthority,
    RiskLevel,
)
from decision_governance.models.security import Entity
from decision_governance.security.context import AuthContext
from decision_governance.security.scope import get_visible_entity_ids

logger = logging.getLogger(__name__)

MIN_SUBJECT_LENGTH = 10
MIN_SLA_MINUTES = 1
MAX_SLA_MINUTES = 1440
DEFAULT_SLA_MINUTES = 60

_ID_ALPHABET = string.ascii_uppercase + string.digits


def list_decisions(db: Session, status: DecisionStatus | None = None) -> list[Decision]:
    # Scope filters are applied transparently via db/filters.py when the session carries an AuthContext.
    stmt = select(Decision).order_by(Decision.created_at.desc(), Decision.id.desc())
    if status is not None:
        stmt = stmt.where(Decision.status == status)
    return list(db.scalars(stmt).all())


def get_decision(db: Session, decision_id: str) -> Decision:
    decision = db.scalars(select(Decision).where(Decision.decision_id == decision_id)).first()
    if decision is None:
        # Out-of-scope decisions look exactly like missing ones to list/read callers.
        raise NotFoundError(f"Decision {decision_id} does not exist.")
    return decision


def list_policies(db: Session) -> list[Policy]:
    return list(db.scalars(select(Policy).order_by(Policy.code)).all())


def get_policy(db: Session, code: str) -> Policy:
    policy = db.scalars(select(Policy).where(Policy.code == code)).first()
    if policy is None:
        raise NotFoundError(f"Policy {code} does not exist.")
    return policy


def authority_matrix_summary(db: Session, matrix: AuthorityMatrix = AUTHORITY_MATRIX) -> dict[str, object]:
    """Matrix payload plus the most recent approved POLICY_CHANGE decision."""
    last_change = db.scalars(
        select(Decision)
        .where(Decision.type == DecisionType.POLICY_CHANGE, Decision.status == DecisionStatus.APPROVED)
        .order_by(Decision.decided_at.desc())
        .limit(1)
        .execution_options(include_out_of_scope=True)
    ).first()

    summary = matrix.describe()
    summary["last_change_decision_id"] = last_change.decision_id if last_change else None
    summary["last_change_date"] = last_change.decided_at if last_change else None
    return summary


def governance_history(db: Session, limit: int = 10) -> list[dict[str, object]]:
    """POLICY_CHANGE decisions, newest first, with their evidence hash where sealed."""
    rows = db.execute(
        select(Decision, EvidencePack)
        .outerjoin(EvidencePack, EvidencePack.decision_id == Decision.decision_id)
        .where(Decision.type == DecisionType.POLICY_CHANGE)
        .order_by(Decision.created_at.desc(), Decision.id.desc())
        .limit(limit)
        .execution_options(include_out_of_scope=True)
    ).all()

    return [
        {
            "decision_id": decision.decision_id,
            "status": decision.status.value,
            "subject": decision.subject,
            "approved_by": decision.decided_by,
            "approved_at": decision.decided_at,
            "evidence_id": evidence.evidence_id if evidence else None,
            "evidence_hash": evidence.merkle_hash if evidence else None,
        }
        for decision, evidence in rows
    ]


def generate_decision_id(now: datetime | None = None) -> str:
    year = (now or utcnow()).year
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"DEC-{year}-{suffix}"


def create_decision(
    db: Session,
    actor: AuthContext,
    *,
    decision_type: DecisionType,
    subject: str,
    policy_code: str,
    risk: RiskLevel,
    required_authority: RequiredAuthority,
    sla_minutes: int = DEFAULT_SLA_MINUTES,
    entity_id: int | None = None,
    amount: str | None = None,
    beneficiary: str | None = None,
    context: str | None = None,
) -> Decision:
    """
    Raise a new PENDING decision.

    GROUP_* decisions are not accepted here; they come from
    `services.groups.request_group_change` so their target is validated.
    """

    if is_group_decision_type(decision_type):
        raise ValidationError(
            f"{decision_type.value} decisions are requested through the group endpoints, not created directly."
        )

    cleaned = (subject or "").strip()
    if len(cleaned) < MIN_SUBJECT_LENGTH:
        raise ValidationError(f"Subject required, min {MIN_SUBJECT_LENGTH} characters.")
    if not MIN_SLA_MINUTES <= sla_minutes <= MAX_SLA_MINUTES:
        raise ValidationError(f"SLA must be between {MIN_SLA_MINUTES} and {MAX_SLA_MINUTES} minutes.")

    get_policy(db, policy_code)

    if entity_id is not None:
        if db.get(Entity, entity_id) is None:
            raise NotFoundError(f"Entity {entity_id} does not exist.")
        if not actor.is_platform_admin and entity_id not in get_visible_entity_ids(actor):
            raise AuthorityError(f"Entity {entity_id} is outside your visible scope, so you cannot raise decisions for it.")

    now = utcnow()
    decision = Decision(
        decision_id=generate_decision_id(now),
        entity_id=entity_id,
        type=decision_type,
        subject=cleaned,
        policy_code=policy_code,
        risk=risk,
        required_authority=required_authority,
        status=DecisionStatus.PENDING,
        sla_deadline=now + timedelta(minutes=sla_minutes),
        amount=amount,
        beneficiary=beneficiary,
        context=context,
        created_at=now,
        updated_at=now,
    )
    db.add(decision)
    db.commit()

    logger.info(
        "Decision %s created type=%s entity_id=%s by user_id=%s",
        decision.decision_id,
        decision_type.value,
        entity_id,
        actor.user_id,
    )
    return decision
