from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from decision_governance.models.security import EntityStatus, MembershipStatus


class EntityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    entity_ref: str
    legal_name: str
    trading_name: str | None
    abn: str | None
    status: EntityStatus


class GroupOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    group_ref: str
    name: str
    status: EntityStatus
    created_at: datetime


class GroupMemberOut(BaseModel):
    membership_status: MembershipStatus
    activated_at: datetime | None
    revoked_at: datetime | None
    entity: EntityOut


class GroupCreateIn(BaseModel):
    name: str


class GroupChangeIn(BaseModel):
    entity_id: int
    reason: str = ""
