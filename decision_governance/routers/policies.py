from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from decision_governance.db.session import get_db
from decision_governance.models.decisions import Policy
from decision_governance.schemas.decisions import PolicyOut
from decision_governance.services.decisions import get_policy, list_policies

router = APIRouter(prefix="/policies", tags=["policies"])


@router.get("", response_model=list[PolicyOut])
def list_all(db: Session = Depends(get_db)) -> list[Policy]:
    return list_policies(db)


@router.get("/{code}", response_model=PolicyOut)
def get_one(code: str, db: Session = Depends(get_db)) -> Policy:
    return get_policy(db, code)
