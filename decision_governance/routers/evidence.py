from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from decision_governance.db.session import get_db
from decision_governance.models.decisions import EvidencePack
from decision_governance.schemas.decisions import EvidencePackOut, EvidenceVerificationOut
from decision_governance.services.evidence import (
    get_evidence_for_decision,
    get_evidence_pack,
    list_evidence_packs,
    verify_evidence_pack,
)

router = APIRouter(prefix="/evidence", tags=["evidence"])


@router.get("", response_model=list[EvidencePackOut])
def list_all(db: Session = Depends(get_db)) -> list[EvidencePack]:
    return list_evidence_packs(db)


@router.get("/by-decision/{decision_id}", response_model=EvidencePackOut)
def by_decision(decision_id: str, db: Session = Depends(get_db)) -> EvidencePack:
    return get_evidence_for_decision(db, decision_id)


@router.get("/{evidence_id}", response_model=EvidencePackOut)
def get_one(evidence_id: str, db: Session = Depends(get_db)) -> EvidencePack:
    return get_evidence_pack(db, evidence_id)


@router.get("/{evidence_id}/verify", response_model=EvidenceVerificationOut)
def verify(evidence_id: str, db: Session = Depends(get_db)) -> EvidenceVerificationOut:
    # Recomputes the hash from the stored row.
    pack = get_evidence_pack(db, evidence_id)
    return EvidenceVerificationOut(
        evidence_id=pack.evidence_id,
        decision_id=pack.decision_id,
        merkle_hash=pack.merkle_hash,
        verified=verify_evidence_pack(pack),
    )
