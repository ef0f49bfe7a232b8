from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from decision_governance.db.session import get_db
from decision_governance.models.decisions import Decision, DecisionStatus
from decision_governance.schemas.decisions import ActionIn, ActionOut, DecisionCreatedOut, DecisionCreateIn, DecisionOut
from decision_governance.security.context import AuthContext
from decision_governance.security.dependencies import get_auth_context
from decision_governance.services import decision_actions
from decision_governance.services.decisions import create_decision, get_decision, list_decisions

router = APIRouter(prefix="/decisions", tags=["decisions"])


@router.get("", response_model=list[DecisionOut])
def list_all(status: DecisionStatus | None = None, db: Session = Depends(get_db)) -> list[Decision]:
    # Entity scoping is applied transparently via db/filters.py.
    return list_decisions(db, status)


@router.post("", response_model=DecisionCreatedOut, status_code=201)
def create(
    body: DecisionCreateIn,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DecisionCreatedOut:
    decision = create_decision(
        db,
        ctx,
        decision_type=body.type,
        subject=body.subject,
        policy_code=body.policy_code,
        risk=body.risk,
        required_authority=body.required_authority,
        sla_minutes=body.sla_minutes,
        entity_id=body.entity_id,
        amount=body.amount,
        beneficiary=body.beneficiary,
        context=body.context,
    )
    return DecisionCreatedOut(decision_id=decision.decision_id)


@router.get("/{decision_id}", response_model=DecisionOut)
def get_one(decision_id: str, db: Session = Depends(get_db)) -> Decision:
    return get_decision(db, decision_id)


# State changes only through explicit verbs; there is no generic update endpoint.


@router.post("/{decision_id}/approve", response_model=ActionOut)
def approve(
    decision_id: str,
    body: ActionIn,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> decision_actions.ActionResult:
    return decision_actions.approve_decision(db, decision_id, body.justification, ctx)


@router.post("/{decision_id}/reject", response_model=ActionOut)
def reject(
    decision_id: str,
    body: ActionIn,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> decision_actions.ActionResult:
    return decision_actions.reject_decision(db, decision_id, body.justification, ctx)


@router.post("/{decision_id}/escalate", response_model=ActionOut)
def escalate(
    decision_id: str,
    body: ActionIn,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> decision_actions.ActionResult:
    return decision_actions.escalate_decision(db, decision_id, body.justification, ctx)
