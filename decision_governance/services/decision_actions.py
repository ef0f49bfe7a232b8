"""
Decision state machine: approve / reject / escalate.

    PENDING -> APPROVED | REJECTED | ESCALATED     (this module)
    APPROVED | REJECTED | ESCALATED -> EXECUTED    (downstream, not here)

Once a decision leaves PENDING it is closed for further action here.

Preconditions, first failure wins:
1. decision exists (NotFoundError) and is PENDING (InvalidStateError)
2. justification is at least 10 characters after trimming (ValidationError)
3. scope check via `validate_decision_authority` (AuthorityError)
4. approve / reject only: the authority matrix allows the actor's platform
   role for the decision type (AuthorityError). Escalation skips this check;
   it is the safety valve and only needs scope.
5. the decision's policy exists (NotFoundError)

The status write is a conditional update (`... WHERE status = 'PENDING'`);
zero affected rows means a concurrent action won and is reported as
InvalidStateError. The status write and the evidence pack commit together:
if sealing evidence fails the transaction is rolled back, the decision stays
PENDING, and IntegrityError is raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
import secrets
import string

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from decision_governance.authority.matrix import AUTHORITY_MATRIX, AuthorityMatrix
from decision_governance.authority.roles import DecisionType
from decision_governance.db.base import utcnow
from decision_governance.errors import AuthorityError, IntegrityError, InvalidStateError, NotFoundError, ValidationError
from decision_governance.models.decisions import Decision, DecisionStatus, EvidenceAction
from decision_governance.security.context import AuthContext
from decision_governance.security.scope import validate_decision_authority
from decision_governance.services.evidence import create_evidence_pack, snapshot_policy

logger = logging.getLogger(__name__)

MIN_JUSTIFICATION_LENGTH = 10

_REF_ALPHABET = string.ascii_uppercase + string.digits


@dataclass(frozen=True)
class _Transition:
    verb: str
    status: DecisionStatus
    evidence_action: EvidenceAction
    requires_matrix_authority: bool


APPROVE = _Transition("approve", DecisionStatus.APPROVED, EvidenceAction.APPROVED, True)
REJECT = _Transition("reject", DecisionStatus.REJECTED, EvidenceAction.REJECTED, True)
ESCALATE = _Transition("escalate", DecisionStatus.ESCALATED, EvidenceAction.ESCALATED, False)


@dataclass(frozen=True)
class ActionResult:
    decision_id: str
    status: DecisionStatus
    evidence_id: str
    merkle_hash: str
    execution_ref: str | None = None
    escalation_roles: tuple[str, ...] = ()
    success: bool = True


def approve_decision(
    db: Session,
    decision_id: str,
    justification: str,
    actor: AuthContext,
    *,
    matrix: AuthorityMatrix = AUTHORITY_MATRIX,
) -> ActionResult:
    return _apply(db, APPROVE, decision_id, justification, actor, matrix)


def reject_decision(
    db: Session,
    decision_id: str,
    justification: str,
    actor: AuthContext,
    *,
    matrix: AuthorityMatrix = AUTHORITY_MATRIX,
) -> ActionResult:
    return _apply(db, REJECT, decision_id, justification, actor, matrix)


def escalate_decision(
    db: Session,
    decision_id: str,
    justification: str,
    actor: AuthContext,
    *,
    matrix: AuthorityMatrix = AUTHORITY_MATRIX,
) -> ActionResult:
    return _apply(db, ESCALATE, decision_id, justification, actor, matrix)


def _apply(
    db: Session,
    transition: _Transition,
    decision_id: str,
    justification: str,
    actor: AuthContext,
    matrix: AuthorityMatrix,
) -> ActionResult:
    decision = _load_decision(db, decision_id)
    if decision.status is not DecisionStatus.PENDING:
        raise InvalidStateError(
            f"Decision {decision_id} is {decision.status.value} and can no longer be {transition.status.value.lower()}."
        )

    cleaned = (justification or "").strip()
    if len(cleaned) < MIN_JUSTIFICATION_LENGTH:
        raise ValidationError(f"Justification required, min {MIN_JUSTIFICATION_LENGTH} characters.")

    reason = validate_decision_authority(actor, decision.entity_id, decision.type)
    if reason is not None:
        logger.info("Denied %s decision_id=%s user_id=%s: %s", transition.verb, decision_id, actor.user_id, reason)
        raise AuthorityError(reason)

    if transition.requires_matrix_authority and not matrix.has_authority(actor.platform_role, decision.type):
        rule = matrix.get_rule(decision.type)
        allowed = ", ".join(sorted(r.value for r in rule.allowed_roles)) if rule else "none"
        message = (
            f"Insufficient authority: your role ({actor.platform_role.value}) cannot {transition.verb} "
            f"{decision.type.value} decisions; allowed roles are {allowed}."
        )
        logger.info("Denied %s decision_id=%s user_id=%s: %s", transition.verb, decision_id, actor.user_id, message)
        raise AuthorityError(message)

    policy = snapshot_policy(db, decision.policy_code)

    now = utcnow()
    execution_ref = _execution_ref(decision.type, now) if transition is APPROVE else None

    if not _claim(db, decision_id, transition.status, actor, cleaned, now, execution_ref):
        logger.info("Lost race on decision_id=%s for %s by user_id=%s", decision_id, transition.verb, actor.user_id)
        raise InvalidStateError(
            f"Decision {decision_id} was already decided by a concurrent action and is no longer actionable."
        )

    try:
        pack = create_evidence_pack(
            db,
            decision,
            actor,
            transition.evidence_action,
            cleaned,
            policy,
            dual_control_required=matrix.requires_dual_control(decision.type),
            execution_ref=execution_ref,
            matrix=matrix,
            now=now,
        )
        evidence_id, merkle_hash = pack.evidence_id, pack.merkle_hash
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("Evidence creation failed for decision_id=%s; transition rolled back", decision_id)
        raise IntegrityError(
            f"Evidence for decision {decision_id} could not be sealed, so the {transition.verb} was not committed."
        ) from exc

    escalation_roles: tuple[str, ...] = ()
    if transition is ESCALATE:
        escalation_roles = tuple(sorted(r.value for r in matrix.get_escalation_roles(decision.type)))

    logger.info(
        "Decision %s %s by user_id=%s role=%s evidence_id=%s",
        decision_id,
        transition.status.value,
        actor.user_id,
        actor.platform_role.value,
        evidence_id,
    )
    return ActionResult(
        decision_id=decision_id,
        status=transition.status,
        evidence_id=evidence_id,
        merkle_hash=merkle_hash,
        execution_ref=execution_ref,
        escalation_roles=escalation_roles,
    )


def _load_decision(db: Session, decision_id: str) -> Decision:
    # Bypass list scoping so out-of-scope actions get an explicit AuthorityError.
    decision = db.scalars(
        select(Decision)
        .where(Decision.decision_id == decision_id)
        .execution_options(include_out_of_scope=True, populate_existing=True)
    ).first()
    if decision is None:
        raise NotFoundError(f"Decision {decision_id} does not exist.")
    return decision


def _claim(
    db: Session,
    decision_id: str,
    status: DecisionStatus,
    actor: AuthContext,
    justification: str,
    now: datetime,
    execution_ref: str | None,
) -> bool:
    values: dict[str, object] = {
        "status": status,
        "decided_at": now,
        "decided_by": actor.user_email or actor.user_name,
        "justification": justification,
        "updated_at": now,
    }
    if execution_ref is not None:
        values["execution_ref"] = execution_ref

    result = db.execute(
        update(Decision)
        .where(Decision.decision_id == decision_id, Decision.status == DecisionStatus.PENDING)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _execution_ref(decision_type: DecisionType, now: datetime) -> str:
    prefix = "PAY" if decision_type is DecisionType.PAYMENT else "EXE"
    suffix = "".join(secrets.choice(_REF_ALPHABET) for _ in range(6))
    return f"{prefix}-{now:%Y%m%d}-{suffix}"
