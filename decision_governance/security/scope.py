"""
Scope authorization functions.

All pure: they read an `AuthContext` and their arguments, nothing else.

The central rule: group scope grants *visibility* over member entities and
never *authority*. `get_actionable_entity_ids` therefore only ever looks at
direct entity scopes, and `has_entity_authority` only at `entity_role_map`.
"""

from __future__ import annotations

from typing import AbstractSet

from decision_governance.authority.roles import DecisionType, Role, is_group_decision_type
from decision_governance.security.context import AuthContext, EntityRole

DEFAULT_ACTION_ROLES: frozenset[EntityRole] = frozenset({EntityRole.ENTITY_ADMIN, EntityRole.ENTITY_APPROVER})


def has_entity_authority(
    ctx: AuthContext,
    entity_id: int,
    required_roles: AbstractSet[EntityRole] = DEFAULT_ACTION_ROLES,
) -> bool:
    role = ctx.entity_role_map.get(entity_id)
    if role is None:
        return False
    return role in required_roles


def has_group_visibility(ctx: AuthContext, group_id: int) -> bool:
    # Any group role counts for visibility.
    return group_id in ctx.group_role_map


def get_visible_entity_ids(ctx: AuthContext) -> frozenset[int]:
    """Entities the user can *see*: direct scopes plus group members. For list filtering only."""
    visible = {scope.entity_id for scope in ctx.entity_scopes}
    for group in ctx.group_scopes:
        visible.update(group.member_entity_ids)
    return frozenset(visible)


def get_actionable_entity_ids(
    ctx: AuthContext,
    required_roles: AbstractSet[EntityRole] = DEFAULT_ACTION_ROLES,
) -> frozenset[int]:
    """Entities the user can *act* on. Group-derived entities are never included."""
    return frozenset(scope.entity_id for scope in ctx.entity_scopes if scope.role in required_roles)


def validate_decision_authority(
    ctx: AuthContext,
    decision_entity_id: int | None,
    decision_type: str | DecisionType,
) -> str | None:
    """
    Return a one-sentence denial reason, or None when the actor may act.

    Checked in order so a broad rule never masks a narrower denial:
    1. platform admin -> allowed
    2. GROUP_* governance types -> platform admin only
    3. entity-anchored decisions -> direct entity authority required
    4. anything else (platform-level, no entity) -> allowed at this layer
    """

    if ctx.platform_role is Role.PLATFORM_ADMIN:
        return None

    if is_group_decision_type(decision_type):
        return (
            "Group governance decisions require PLATFORM_ADMIN authority; "
            f"your platform role is {ctx.platform_role.value}."
        )

    if decision_entity_id is not None and not has_entity_authority(ctx, decision_entity_id):
        return (
            f"You do not have authority over entity {decision_entity_id} "
            f"(requires one of {_format_roles(DEFAULT_ACTION_ROLES)}). "
            "Group scope does not grant entity authority."
        )

    return None


def _format_roles(roles: AbstractSet[EntityRole]) -> str:
    return ", ".join(sorted(r.value for r in roles))
