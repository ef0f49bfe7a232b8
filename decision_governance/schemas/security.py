from __future__ import annotations

from pydantic import BaseModel


class EntityScopeOut(BaseModel):
    entity_id: int
    entity_ref: str | None
    legal_name: str
    role: str


class GroupScopeOut(BaseModel):
    group_id: int
    group_ref: str | None
    name: str
    role: str
    member_entity_ids: list[int]


class AuthContextOut(BaseModel):
    user_id: int
    user_name: str
    user_email: str | None
    platform_role: str
    platform_role_label: str
    entity_scopes: list[EntityScopeOut]
    group_scopes: list[GroupScopeOut]

    # Derived sets, handy for the UI scope selector.
    visible_entity_ids: list[int]
    actionable_entity_ids: list[int]
