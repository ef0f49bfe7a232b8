from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from decision_governance.db.session import get_db
from decision_governance.models.security import Group
from decision_governance.schemas.decisions import DecisionCreatedOut
from decision_governance.schemas.groups import EntityOut, GroupChangeIn, GroupCreateIn, GroupMemberOut, GroupOut
from decision_governance.security.context import AuthContext
from decision_governance.security.dependencies import get_auth_context
from decision_governance.services import groups as group_service

router = APIRouter(prefix="/groups", tags=["groups"])


@router.get("", response_model=list[GroupOut])
def list_all(db: Session = Depends(get_db), ctx: AuthContext = Depends(get_auth_context)) -> list[Group]:
    return group_service.list_groups(db, ctx)


@router.get("/{group_id}", response_model=GroupOut)
def get_one(group_id: int, db: Session = Depends(get_db), ctx: AuthContext = Depends(get_auth_context)) -> Group:
    return group_service.get_group(db, ctx, group_id)


@router.get("/{group_id}/members", response_model=list[GroupMemberOut])
def members(
    group_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[GroupMemberOut]:
    return [
        GroupMemberOut(
            membership_status=membership.status,
            activated_at=membership.activated_at,
            revoked_at=membership.revoked_at,
            entity=EntityOut.model_validate(entity),
        )
        for membership, entity in group_service.list_group_members(db, ctx, group_id)
    ]


# Group changes are requests: each raises a PENDING GROUP_* decision.


@router.post("", response_model=DecisionCreatedOut, status_code=201)
def request_creation(
    body: GroupCreateIn,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DecisionCreatedOut:
    decision = group_service.request_group_creation(db, ctx, body.name)
    return DecisionCreatedOut(decision_id=decision.decision_id)


@router.post("/{group_id}/add-entity", response_model=DecisionCreatedOut, status_code=201)
def request_add_entity(
    group_id: int,
    body: GroupChangeIn,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DecisionCreatedOut:
    decision = group_service.request_group_change(
        db, ctx, group_id, body.entity_id, body.reason, group_service.ADD_ENTITY
    )
    return DecisionCreatedOut(decision_id=decision.decision_id)


@router.post("/{group_id}/remove-entity", response_model=DecisionCreatedOut, status_code=201)
def request_remove_entity(
    group_id: int,
    body: GroupChangeIn,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DecisionCreatedOut:
    decision = group_service.request_group_change(
        db, ctx, group_id, body.entity_id, body.reason, group_service.REMOVE_ENTITY
    )
    return DecisionCreatedOut(decision_id=decision.decision_id)
