from __future__ import annotations

from datetime import timedelta
import json

from sqlalchemy import select
from sqlalchemy.orm import Session

from decision_governance.authority.roles import DecisionType
from decision_governance.db.base import Base, utcnow
from decision_governance.db.session import SessionLocal, engine
from decision_governance.models.decisions import Decision, DecisionStatus, Policy, RequiredAuthority, RiskLevel
from decision_governance.models.security import (
    Entity,
    EntityUserRole,
    Group,
    GroupMembership,
    GroupUserRole,
    MembershipStatus,
    User,
)
from decision_governance.security.context import EntityRole, GroupRole


def init_db(seed: bool = True) -> None:
    """
    Create tables + seed demo data.

    The dataset is small and deterministic so the scope rules can be tried
    without extra setup (see `seed_demo_data` for who can see and do what).
    """

    Base.metadata.create_all(bind=engine)

    if not seed:
        return

    with SessionLocal() as db:
        if _has_seed_data(db):
            return
        seed_demo_data(db)


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Policy.id).limit(1)).first() is not None


def seed_demo_data(db: Session) -> None:
    """
    Users (bearer token = user id):

    1 alice   admin       platform admin, no scopes
    2 sam     supervisor  ENTITY_APPROVER on BHP
    3 cora    compliance  ENTITY_ADMIN on Telstra, ENTITY_APPROVER on Woolworths
    4 gail    supervisor  GROUP_FINANCE on Coastal Mining (BHP + Rio), no entity scope
    5 otto    operator    ENTITY_VIEWER on Rio
    """

    now = utcnow()

    # Policies
    db.add_all(
        [
            Policy(code="PAY-001", name="Standard Payment Approval", description="Payments under $10,000 AUD to known beneficiaries", required_authority=RequiredAuthority.SUPERVISOR, risk_level=RiskLevel.LOW),
            Policy(code="PAY-004", name="High Value Payment Approval", description="Payments over $25,000 AUD to any beneficiary", required_authority=RequiredAuthority.SUPERVISOR, risk_level=RiskLevel.MEDIUM, version="2.1"),
            Policy(code="LIM-001", name="Daily Limit Override", description="Override for daily outgoing transaction limits", required_authority=RequiredAuthority.DUAL, risk_level=RiskLevel.HIGH),
            Policy(code="AML-009", name="AML Exception Review", description="High velocity transaction pattern review", required_authority=RequiredAuthority.COMPLIANCE, risk_level=RiskLevel.CRITICAL),
            Policy(code="GOV-001", name="Authority Matrix Change", description="Changes to the authority matrix or policy set", required_authority=RequiredAuthority.DUAL, risk_level=RiskLevel.HIGH),
            Policy(code="GRP-001", name="Group Creation", description="Creating a consolidation group", required_authority=RequiredAuthority.PLATFORM_ADMIN, risk_level=RiskLevel.MEDIUM),
            Policy(code="GRP-002", name="Group Membership Change", description="Adding an entity to a consolidation group", required_authority=RequiredAuthority.PLATFORM_ADMIN, risk_level=RiskLevel.MEDIUM),
            Policy(code="GRP-003", name="Group Membership Removal", description="Removing an entity from a consolidation group", required_authority=RequiredAuthority.PLATFORM_ADMIN, risk_level=RiskLevel.HIGH),
        ]
    )

    # Entities
    bhp = Entity(entity_ref="ENT-BHPGRP", legal_name="BHP Group Limited", trading_name="BHP", abn="49004028077")
    rio = Entity(entity_ref="ENT-RIOTNT", legal_name="Rio Tinto Limited", trading_name="Rio Tinto", abn="96004458404")
    woolw = Entity(entity_ref="ENT-WOOLW", legal_name="Woolworths Group Limited", trading_name="Woolworths", abn="88000014675")
    telst = Entity(entity_ref="ENT-TELST", legal_name="Telstra Corporation Limited", trading_name="Telstra", abn="33051775556")
    db.add_all([bhp, rio, woolw, telst])
    db.flush()

    # Users
    alice = User(open_id="alice", name="Alice Admin", email="alice@example.com", role="admin")
    sam = User(open_id="sam", name="Sam Supervisor", email="sam@example.com", role="supervisor")
    cora = User(open_id="cora", name="Cora Compliance", email="cora@example.com", role="compliance")
    gail = User(open_id="gail", name="Gail Group", email="gail@example.com", role="supervisor")
    otto = User(open_id="otto", name="Otto Operator", email="otto@example.com", role="operator")
    db.add_all([alice, sam, cora, gail, otto])
    db.flush()

    # Group (visibility only) with two active members and one pending
    coastal = Group(group_ref="GRP-COASTAL", name="Coastal Mining Group", created_by=alice.id)
    db.add(coastal)
    db.flush()
    db.add_all(
        [
            GroupMembership(group_id=coastal.id, entity_id=bhp.id, status=MembershipStatus.ACTIVE, activated_at=now),
            GroupMembership(group_id=coastal.id, entity_id=rio.id, status=MembershipStatus.ACTIVE, activated_at=now),
            GroupMembership(group_id=coastal.id, entity_id=woolw.id, status=MembershipStatus.PENDING),
        ]
    )

    db.add_all(
        [
            EntityUserRole(entity_id=bhp.id, user_id=sam.id, role=EntityRole.ENTITY_APPROVER),
            EntityUserRole(entity_id=telst.id, user_id=cora.id, role=EntityRole.ENTITY_ADMIN),
            EntityUserRole(entity_id=woolw.id, user_id=cora.id, role=EntityRole.ENTITY_APPROVER),
            EntityUserRole(entity_id=rio.id, user_id=otto.id, role=EntityRole.ENTITY_VIEWER),
            GroupUserRole(group_id=coastal.id, user_id=gail.id, role=GroupRole.GROUP_FINANCE),
        ]
    )

    year = now.year
    db.add_all(
        [
            Decision(
                decision_id=f"DEC-{year}-ENT001",
                entity_id=bhp.id,
                type=DecisionType.PAYMENT,
                subject="Payment Approval: $2.5M AUD to Caterpillar Inc.",
                policy_code="PAY-004",
                risk=RiskLevel.HIGH,
                required_authority=RequiredAuthority.DUAL,
                status=DecisionStatus.PENDING,
                sla_deadline=now + timedelta(hours=4),
                amount="$2,500,000 AUD",
                beneficiary="Caterpillar Inc.",
                context="Mining equipment procurement payment. Large value requires dual control approval.",
            ),
            Decision(
                decision_id=f"DEC-{year}-ENT002",
                entity_id=rio.id,
                type=DecisionType.PAYMENT,
                subject="Payment Approval: $850,000 AUD to Port Hedland Authority",
                policy_code="PAY-004",
                risk=RiskLevel.MEDIUM,
                required_authority=RequiredAuthority.SUPERVISOR,
                status=DecisionStatus.PENDING,
                sla_deadline=now + timedelta(hours=2),
                amount="$850,000 AUD",
                beneficiary="Port Hedland Authority",
                context="Port usage fees for Q4. Standard recurring payment.",
            ),
            Decision(
                decision_id=f"DEC-{year}-ENT003",
                entity_id=woolw.id,
                type=DecisionType.LIMIT_OVERRIDE,
                subject="Limit Override: Daily payment limit exceeded",
                policy_code="LIM-001",
                risk=RiskLevel.HIGH,
                required_authority=RequiredAuthority.DUAL,
                status=DecisionStatus.PENDING,
                sla_deadline=now + timedelta(hours=1),
                context="Daily outgoing limit of $5M AUD exceeded. Current total: $6.2M AUD.",
            ),
            Decision(
                decision_id=f"DEC-{year}-ENT004",
                entity_id=telst.id,
                type=DecisionType.AML_EXCEPTION,
                subject="AML Flag: Unusual transaction pattern detected",
                policy_code="AML-009",
                risk=RiskLevel.CRITICAL,
                required_authority=RequiredAuthority.COMPLIANCE,
                status=DecisionStatus.PENDING,
                sla_deadline=now + timedelta(minutes=30),
                context="Multiple high-value transactions to new beneficiaries in short timeframe.",
            ),
            Decision(
                decision_id=f"DEC-{year}-GOV001",
                type=DecisionType.POLICY_CHANGE,
                subject="Raise PAY-001 auto-approval threshold to $15,000 AUD",
                policy_code="GOV-001",
                risk=RiskLevel.HIGH,
                required_authority=RequiredAuthority.DUAL,
                status=DecisionStatus.PENDING,
                sla_deadline=now + timedelta(hours=24),
            ),
            Decision(
                decision_id=f"DEC-{year}-GRP001",
                entity_id=woolw.id,
                group_id=coastal.id,
                type=DecisionType.GROUP_ADD_ENTITY,
                subject="Add Woolworths Group Limited to Coastal Mining Group",
                policy_code="GRP-002",
                risk=RiskLevel.MEDIUM,
                required_authority=RequiredAuthority.PLATFORM_ADMIN,
                status=DecisionStatus.PENDING,
                sla_deadline=now + timedelta(hours=24),
                group_context=json.dumps(
                    {
                        "targetEntityId": woolw.id,
                        "targetEntityLegalName": woolw.legal_name,
                        "reason": "Consolidated treasury reporting for the retail segment.",
                    }
                ),
            ),
        ]
    )

    db.commit()
