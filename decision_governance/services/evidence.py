"""
Evidence pack generation.

An evidence pack seals one decision transition: who acted, what they did,
why, and under which policy version. The `merkle_hash` is a SHA-256 over a
canonical JSON serialization of

    {decision_id, actor_id, action, justification, policy_snapshot, timestamp}

so identical inputs always produce the identical hash. The hash is for
tamper evidence, not secrecy: `verify_evidence_pack` recomputes it from the
stored row.

There is no update or delete path; see the mapper guards on `EvidencePack`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import hashlib
import json
import logging
import secrets
import string

from sqlalchemy import select
from sqlalchemy.orm import Session

from decision_governance.authority.matrix import AUTHORITY_MATRIX, AuthorityMatrix
from decision_governance.db.base import utcnow
from decision_governance.errors import NotFoundError
from decision_governance.models.decisions import Decision, EvidenceAction, EvidencePack, Policy
from decision_governance.security.context import AuthContext

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_uppercase + string.digits


@dataclass(frozen=True)
class PolicySnapshot:
    """Policy code and version copied at action time."""

    code: str
    version: str
    text: str | None = None

    def __str__(self) -> str:
        return f"{self.code} v{self.version}"


def snapshot_policy(db: Session, policy_code: str) -> PolicySnapshot:
    policy = db.scalars(select(Policy).where(Policy.code == policy_code)).first()
    if policy is None:
        raise NotFoundError(f"Policy {policy_code} referenced by the decision does not exist.")
    return PolicySnapshot(code=policy.code, version=policy.version, text=policy.description)


def generate_evidence_id(now: datetime | None = None) -> str:
    year = (now or utcnow()).year
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"EVD-{year}-{suffix}"


def canonical_payload(
    decision_id: str,
    actor_id: int,
    action: EvidenceAction | str,
    justification: str,
    policy_snapshot: PolicySnapshot | str,
    timestamp: datetime,
) -> str:
    action_value = action.value if isinstance(action, EvidenceAction) else str(action)
    return json.dumps(
        {
            "decisionId": decision_id,
            "actorId": actor_id,
            "action": action_value,
            "justification": justification,
            "policySnapshot": str(policy_snapshot),
            "timestamp": timestamp.isoformat(),
        },
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def compute_merkle_hash(
    decision_id: str,
    actor_id: int,
    action: EvidenceAction | str,
    justification: str,
    policy_snapshot: PolicySnapshot | str,
    timestamp: datetime,
) -> str:
    payload = canonical_payload(decision_id, actor_id, action, justification, policy_snapshot, timestamp)
    return "0x" + hashlib.sha256(payload.encode("utf-8")).hexdigest()


def create_evidence_pack(
    db: Session,
    decision: Decision,
    actor: AuthContext,
    action: EvidenceAction,
    justification: str,
    policy: PolicySnapshot,
    *,
    dual_control_required: bool = False,
    execution_ref: str | None = None,
    matrix: AuthorityMatrix = AUTHORITY_MATRIX,
    now: datetime | None = None,
) -> EvidencePack:
    """
    Insert one evidence pack for a transition and flush it.

    The caller owns the transaction: the pack and the status change commit
    together or not at all.
    """

    created_at = now or utcnow()
    pack = EvidencePack(
        evidence_id=generate_evidence_id(created_at),
        decision_id=decision.decision_id,
        actor_id=actor.user_id,
        actor_name=actor.user_name,
        actor_role=actor.platform_role.value,
        action=action,
        justification=justification,
        policy_snapshot=str(policy),
        policy_text=policy.text,
        merkle_hash=compute_merkle_hash(
            decision.decision_id, actor.user_id, action, justification, policy, created_at
        ),
        execution_ref=execution_ref,
        dual_control_required=dual_control_required,
        escalation_triggered=action is EvidenceAction.ESCALATED,
        authority_matrix_version=matrix.version,
        authority_matrix_hash=matrix.fingerprint(),
        created_at=created_at,
    )
    db.add(pack)
    db.flush()

    logger.info(
        "Evidence sealed evidence_id=%s decision_id=%s action=%s hash=%s",
        pack.evidence_id,
        pack.decision_id,
        action.value,
        pack.merkle_hash[:18],
    )
    return pack


def verify_evidence_pack(pack: EvidencePack) -> bool:
    """Recompute the hash from the stored fields and compare."""
    expected = compute_merkle_hash(
        pack.decision_id,
        pack.actor_id,
        pack.action,
        pack.justification,
        pack.policy_snapshot,
        pack.created_at,
    )
    return secrets.compare_digest(expected, pack.merkle_hash)


def get_evidence_pack(db: Session, evidence_id: str) -> EvidencePack:
    pack = db.scalars(select(EvidencePack).where(EvidencePack.evidence_id == evidence_id)).first()
    if pack is None:
        raise NotFoundError(f"Evidence pack {evidence_id} does not exist.")
    return pack


def get_evidence_for_decision(db: Session, decision_id: str) -> EvidencePack:
    pack = db.scalars(select(EvidencePack).where(EvidencePack.decision_id == decision_id)).first()
    if pack is None:
        raise NotFoundError(f"No evidence pack exists for decision {decision_id}.")
    return pack


def list_evidence_packs(db: Session) -> list[EvidencePack]:
    return list(db.scalars(select(EvidencePack).order_by(EvidencePack.created_at.desc(), EvidencePack.id.desc())).all())
