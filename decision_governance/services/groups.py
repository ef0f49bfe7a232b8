"""
Entity and group reads, and group-governance requests.

Groups are aggregation constructs, not legal entities. Changing one never
happens directly: `request_group_creation` and `request_group_change` raise a
PENDING GROUP_* decision which a PLATFORM_ADMIN must then approve through
the decision state machine.

Reads are scoped to the caller: entities they can see (direct scopes plus
active group members) and groups they hold a role on. Platform admins see
everything.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
import json
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from decision_governance.authority.roles import DecisionType
from decision_governance.db.base import utcnow
from decision_governance.errors import AuthorityError, NotFoundError, ValidationError
from decision_governance.models.decisions import Decision, DecisionStatus, RequiredAuthority, RiskLevel
from decision_governance.models.security import Entity, Group, GroupMembership
from decision_governance.security.context import AuthContext
from decision_governance.security.scope import get_visible_entity_ids, has_group_visibility
from decision_governance.services.decisions import generate_decision_id, get_policy

logger = logging.getLogger(__name__)

MIN_GROUP_NAME_LENGTH = 3
MIN_REASON_LENGTH = 10
GROUP_REQUEST_SLA = timedelta(hours=24)


@dataclass(frozen=True)
class _GroupChange:
    decision_type: DecisionType
    policy_code: str
    risk: RiskLevel
    verb: str
    preposition: str


ADD_ENTITY = _GroupChange(DecisionType.GROUP_ADD_ENTITY, "GRP-002", RiskLevel.MEDIUM, "Add", "to")
REMOVE_ENTITY = _GroupChange(DecisionType.GROUP_REMOVE_ENTITY, "GRP-003", RiskLevel.HIGH, "Remove", "from")


# ---- Reads ------------------------------------------------------------------------


def list_entities(db: Session, actor: AuthContext) -> list[Entity]:
    stmt = select(Entity).order_by(Entity.legal_name)
    if not actor.is_platform_admin:
        stmt = stmt.where(Entity.id.in_(sorted(get_visible_entity_ids(actor))))
    return list(db.scalars(stmt).all())


def get_entity(db: Session, actor: AuthContext, entity_id: int) -> Entity:
    entity = db.get(Entity, entity_id)
    if entity is None or not (actor.is_platform_admin or entity_id in get_visible_entity_ids(actor)):
        raise NotFoundError(f"Entity {entity_id} does not exist.")
    return entity


def list_groups(db: Session, actor: AuthContext) -> list[Group]:
    stmt = select(Group).order_by(Group.name)
    if not actor.is_platform_admin:
        stmt = stmt.where(Group.id.in_(sorted(actor.group_role_map)))
    return list(db.scalars(stmt).all())


def get_group(db: Session, actor: AuthContext, group_id: int) -> Group:
    group = db.get(Group, group_id)
    if group is None or not (actor.is_platform_admin or has_group_visibility(actor, group_id)):
        raise NotFoundError(f"Group {group_id} does not exist.")
    return group


def list_group_members(db: Session, actor: AuthContext, group_id: int) -> list[tuple[GroupMembership, Entity]]:
    """Memberships of one group joined to their entity, limited to entities the caller can see."""
    get_group(db, actor, group_id)

    stmt = (
        select(GroupMembership, Entity)
        .join(Entity, Entity.id == GroupMembership.entity_id)
        .where(GroupMembership.group_id == group_id)
        .order_by(Entity.legal_name)
    )
    if not actor.is_platform_admin:
        stmt = stmt.where(Entity.id.in_(sorted(get_visible_entity_ids(actor))))
    return [(membership, entity) for membership, entity in db.execute(stmt).all()]


# ---- Governance requests ----------------------------------------------------------


def request_group_creation(db: Session, actor: AuthContext, name: str) -> Decision:
    _require_platform_admin(actor, "request a new group")

    cleaned = (name or "").strip()
    if len(cleaned) < MIN_GROUP_NAME_LENGTH:
        raise ValidationError(f"Group name required, min {MIN_GROUP_NAME_LENGTH} characters.")

    return _raise_group_decision(
        db,
        actor,
        decision_type=DecisionType.GROUP_CREATE,
        policy_code="GRP-001",
        risk=RiskLevel.MEDIUM,
        subject=f"Create Group: {cleaned}",
        group_context={"name": cleaned},
    )


def request_group_change(
    db: Session,
    actor: AuthContext,
    group_id: int,
    entity_id: int,
    reason: str,
    change: _GroupChange = ADD_ENTITY,
) -> Decision:
    """Raise a GROUP_ADD_ENTITY or GROUP_REMOVE_ENTITY decision for one entity."""
    _require_platform_admin(actor, f"request a {change.decision_type.value} change")

    cleaned = (reason or "").strip()
    if len(cleaned) < MIN_REASON_LENGTH:
        raise ValidationError(f"Reason required, min {MIN_REASON_LENGTH} characters.")

    group = db.get(Group, group_id)
    if group is None:
        raise NotFoundError(f"Group {group_id} does not exist.")
    entity = db.get(Entity, entity_id)
    if entity is None:
        raise NotFoundError(f"Entity {entity_id} does not exist.")

    return _raise_group_decision(
        db,
        actor,
        decision_type=change.decision_type,
        policy_code=change.policy_code,
        risk=change.risk,
        subject=f"{change.verb} {entity.legal_name} {change.preposition} {group.name}",
        group_context={
            "targetEntityId": entity.id,
            "targetEntityLegalName": entity.legal_name,
            "reason": cleaned,
        },
        group_id=group.id,
        entity_id=entity.id,
    )


def _require_platform_admin(actor: AuthContext, what: str) -> None:
    if not actor.is_platform_admin:
        raise AuthorityError(
            f"Only PLATFORM_ADMIN may {what}; your platform role is {actor.platform_role.value}."
        )


def _raise_group_decision(
    db: Session,
    actor: AuthContext,
    *,
    decision_type: DecisionType,
    policy_code: str,
    risk: RiskLevel,
    subject: str,
    group_context: dict[str, object],
    group_id: int | None = None,
    entity_id: int | None = None,
) -> Decision:
    get_policy(db, policy_code)

    now = utcnow()
    decision = Decision(
        decision_id=generate_decision_id(now),
        entity_id=entity_id,
        group_id=group_id,
        type=decision_type,
        subject=subject,
        policy_code=policy_code,
        risk=risk,
        required_authority=RequiredAuthority.PLATFORM_ADMIN,
        status=DecisionStatus.PENDING,
        sla_deadline=now + GROUP_REQUEST_SLA,
        group_context=json.dumps(group_context),
        created_at=now,
        updated_at=now,
    )
    db.add(decision)
    db.commit()

    logger.info(
        "Group request %s raised type=%s group_id=%s entity_id=%s by user_id=%s",
        decision.decision_id,
        decision_type.value,
        group_id,
        entity_id,
        actor.user_id,
    )
    return decision
