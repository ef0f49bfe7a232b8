from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from decision_governance.authority.roles import normalize_role
from decision_governance.errors import NotFoundError
from decision_governance.models.security import (
    Entity,
    EntityUserRole,
    Group,
    GroupMembership,
    GroupUserRole,
    MembershipStatus,
    User,
)
from decision_governance.security.context import AuthContext, EntityScope, GroupScope

logger = logging.getLogger(__name__)


def resolve_auth_context(db: Session, user_id: int) -> AuthContext:
    """
    Build a fresh `AuthContext` for `user_id`.

    - Entity role assignments become `EntityScope`s (action authority).
    - Group role assignments become `GroupScope`s carrying the ids of the
      group's ACTIVE member entities (visibility only).

    Read-only. A user with no assignments resolves to empty scope lists;
    only a missing user raises `NotFoundError`.
    """

    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} does not exist.")

    entity_rows = db.execute(
        select(EntityUserRole.entity_id, EntityUserRole.role, Entity.entity_ref, Entity.legal_name)
        .join(Entity, Entity.id == EntityUserRole.entity_id)
        .where(EntityUserRole.user_id == user_id)
        .order_by(EntityUserRole.entity_id)
    ).all()

    entity_scopes = tuple(
        EntityScope(
            entity_id=row.entity_id,
            entity_ref=row.entity_ref,
            legal_name=row.legal_name,
            role=row.role,
        )
        for row in entity_rows
    )

    group_rows = db.execute(
        select(GroupUserRole.group_id, GroupUserRole.role, Group.group_ref, Group.name)
        .join(Group, Group.id == GroupUserRole.group_id)
        .where(GroupUserRole.user_id == user_id)
        .order_by(GroupUserRole.group_id)
    ).all()

    group_scopes = tuple(
        GroupScope(
            group_id=row.group_id,
            group_ref=row.group_ref,
            name=row.name,
            role=row.role,
            member_entity_ids=_active_member_entity_ids(db, row.group_id),
        )
        for row in group_rows
    )

    ctx = AuthContext(
        user_id=user.id,
        user_name=user.name or "Unknown",
        user_email=user.email,
        platform_role=normalize_role(user.role),
        entity_scopes=entity_scopes,
        group_scopes=group_scopes,
    )

    logger.debug(
        "Resolved auth context user_id=%s role=%s entities=%s groups=%s",
        user_id,
        ctx.platform_role.value,
        sorted(ctx.entity_role_map),
        sorted(ctx.group_role_map),
    )
    return ctx


def _active_member_entity_ids(db: Session, group_id: int) -> frozenset[int]:
    rows = db.scalars(
        select(GroupMembership.entity_id).where(
            GroupMembership.group_id == group_id,
            GroupMembership.status == MembershipStatus.ACTIVE,
        )
    ).all()
    return frozenset(rows)
