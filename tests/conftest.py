"""
Pytest fixtures for the test suite.

Data-layer and service tests use a fresh in-memory SQLite engine per test, so
tests never see each other's rows. Sessions are plain (no outer transaction)
because the decision state machine owns its own commit/rollback.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from decision_governance.authority.roles import DecisionType, Role
from decision_governance.db import filters as _filters  # noqa: F401  (register scope filters)
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
from decision_governance.security.context import (
    AuthContext,
    EntityRole,
    EntityScope,
    GroupRole,
    GroupScope,
)


TEST_DB_URL = "sqlite://"

SUPERVISOR_APPROVER = 1  # SUPERVISOR, ENTITY_APPROVER on entity 7
GROUP_ONLY_SUPERVISOR = 2  # SUPERVISOR, GROUP_VIEWER on group 1 (entities 7, 9)
PLATFORM_ADMIN = 3  # admin, no scopes
COMPLIANCE_ADMIN = 4  # COMPLIANCE, ENTITY_ADMIN on entity 9
OPERATOR_APPROVER = 5  # OPERATOR, ENTITY_APPROVER on entity 7
NO_SCOPES = 6  # SUPERVISOR, nothing assigned
FINANCE_ONLY = 7  # SUPERVISOR, ENTITY_FINANCE on entity 7


@pytest.fixture
def users():
    """User ids created by the `scenario` fixture."""
    return SimpleNamespace(
        supervisor_approver=SUPERVISOR_APPROVER,
        group_only_supervisor=GROUP_ONLY_SUPERVISOR,
        platform_admin=PLATFORM_ADMIN,
        compliance_admin=COMPLIANCE_ADMIN,
        operator_approver=OPERATOR_APPROVER,
        no_scopes=NO_SCOPES,
        finance_only=FINANCE_ONLY,
    )


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test (one shared connection)."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from decision_governance.db.base import Base
    from decision_governance.models import decisions, security  # noqa: F401  (register models)

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def session_factory(tables):
    return sessionmaker(bind=tables, autocommit=False, autoflush=False, class_=Session)


@pytest.fixture
def db_session(session_factory):
    """Provide a Session bound to the test DB."""
    session = session_factory()
    yield session
    session.close()


def _decision(decision_id: str, entity_id: int | None, type_: DecisionType, policy_code: str, **extra) -> Decision:
    return Decision(
        decision_id=decision_id,
        entity_id=entity_id,
        type=type_,
        subject=extra.pop("subject", f"{type_.value} decision {decision_id}"),
        policy_code=policy_code,
        risk=extra.pop("risk", RiskLevel.MEDIUM),
        required_authority=extra.pop("required_authority", RequiredAuthority.SUPERVISOR),
        status=extra.pop("status", DecisionStatus.PENDING),
        sla_deadline=datetime(2026, 1, 1, 12, 0) + timedelta(hours=4),
        created_at=extra.pop("created_at", datetime(2026, 1, 1, 8, 0)),
        **extra,
    )


@pytest.fixture
def scenario(db_session):
    """
    Governance dataset used across tests.

    Entities 7 and 9 are ACTIVE members of group 1; entity 11 was revoked.
    DEC-1: PAYMENT on entity 7      DEC-2: PAYMENT on entity 9
    DEC-3: AML_EXCEPTION on 9       DEC-4: GROUP_ADD_ENTITY (group 1, entity 11)
    DEC-5: POLICY_CHANGE, no entity DEC-6: PAYMENT on 7 with an unknown policy
    DEC-7: AML_EXCEPTION on 7       DEC-8: already APPROVED PAYMENT on 7
    """

    db = db_session
    db.add_all(
        [
            Policy(code="PAY-004", name="High Value Payment Approval", description="Payments over $25,000 AUD", required_authority=RequiredAuthority.SUPERVISOR, version="2.1"),
            Policy(code="AML-009", name="AML Exception Review", required_authority=RequiredAuthority.COMPLIANCE, risk_level=RiskLevel.CRITICAL),
            Policy(code="GRP-001", name="Group Creation", required_authority=RequiredAuthority.PLATFORM_ADMIN),
            Policy(code="GRP-002", name="Group Membership Change", required_authority=RequiredAuthority.PLATFORM_ADMIN),
            Policy(code="GRP-003", name="Group Membership Removal", required_authority=RequiredAuthority.PLATFORM_ADMIN, risk_level=RiskLevel.HIGH),
            Policy(code="GOV-001", name="Authority Matrix Change", required_authority=RequiredAuthority.DUAL, version="3.0"),
        ]
    )
    db.add_all(
        [
            Entity(id=7, entity_ref="ENT-SEVEN", legal_name="Seven Holdings Pty Ltd"),
            Entity(id=9, entity_ref="ENT-NINE", legal_name="Nine Resources Limited"),
            Entity(id=11, entity_ref="ENT-ELEVEN", legal_name="Eleven Retail Limited"),
        ]
    )
    db.add_all(
        [
            User(id=SUPERVISOR_APPROVER, open_id="u1", name="Sam Supervisor", email="sam@example.com", role="supervisor"),
            User(id=GROUP_ONLY_SUPERVISOR, open_id="u2", name="Gail Group", email="gail@example.com", role="SUPERVISOR"),
            User(id=PLATFORM_ADMIN, open_id="u3", name="Alice Admin", email="alice@example.com", role="admin"),
            User(id=COMPLIANCE_ADMIN, open_id="u4", name="Cora Compliance", email=None, role="compliance"),
            User(id=OPERATOR_APPROVER, open_id="u5", name="Otto Operator", email="otto@example.com", role="operator"),
            User(id=NO_SCOPES, open_id="u6", name=None, email=None, role="supervisor"),
            User(id=FINANCE_ONLY, open_id="u7", name="Fin Finance", email="fin@example.com", role="supervisor"),
        ]
    )
    db.add(Group(id=1, group_ref="GRP-ONE", name="Group One"))
    db.flush()

    db.add_all(
        [
            GroupMembership(group_id=1, entity_id=7, status=MembershipStatus.ACTIVE),
            GroupMembership(group_id=1, entity_id=9, status=MembershipStatus.ACTIVE),
            GroupMembership(group_id=1, entity_id=11, status=MembershipStatus.REVOKED),
            EntityUserRole(entity_id=7, user_id=SUPERVISOR_APPROVER, role=EntityRole.ENTITY_APPROVER),
            EntityUserRole(entity_id=9, user_id=COMPLIANCE_ADMIN, role=EntityRole.ENTITY_ADMIN),
            EntityUserRole(entity_id=7, user_id=OPERATOR_APPROVER, role=EntityRole.ENTITY_APPROVER),
            EntityUserRole(entity_id=7, user_id=FINANCE_ONLY, role=EntityRole.ENTITY_FINANCE),
            GroupUserRole(group_id=1, user_id=GROUP_ONLY_SUPERVISOR, role=GroupRole.GROUP_VIEWER),
        ]
    )

    db.add_all(
        [
            _decision("DEC-1", 7, DecisionType.PAYMENT, "PAY-004", amount="$40,000 AUD", beneficiary="Acme Corp Ltd."),
            _decision("DEC-2", 9, DecisionType.PAYMENT, "PAY-004"),
            _decision("DEC-3", 9, DecisionType.AML_EXCEPTION, "AML-009", required_authority=RequiredAuthority.COMPLIANCE),
            _decision("DEC-4", 11, DecisionType.GROUP_ADD_ENTITY, "GRP-002", group_id=1, required_authority=RequiredAuthority.PLATFORM_ADMIN),
            _decision("DEC-5", None, DecisionType.POLICY_CHANGE, "GOV-001", required_authority=RequiredAuthority.DUAL),
            _decision("DEC-6", 7, DecisionType.PAYMENT, "PAY-999"),
            _decision("DEC-7", 7, DecisionType.AML_EXCEPTION, "AML-009", required_authority=RequiredAuthority.COMPLIANCE),
            _decision(
                "DEC-8",
                7,
                DecisionType.PAYMENT,
                "PAY-004",
                status=DecisionStatus.APPROVED,
                decided_at=datetime(2026, 1, 1, 9, 0),
                decided_by="sam@example.com",
                justification="Approved earlier in the day.",
            ),
        ]
    )
    db.commit()
    return db


@pytest.fixture
def make_context():
    """Build an AuthContext directly, without touching the database."""

    def _make(
        platform_role: Role = Role.SUPERVISOR,
        entity_roles: dict[int, EntityRole] | None = None,
        groups: dict[int, tuple[GroupRole, set[int]]] | None = None,
        user_id: int = 100,
    ) -> AuthContext:
        return AuthContext(
            user_id=user_id,
            user_name=f"user-{user_id}",
            platform_role=platform_role,
            entity_scopes=tuple(
                EntityScope(entity_id=eid, legal_name=f"Entity {eid}", role=role)
                for eid, role in sorted((entity_roles or {}).items())
            ),
            group_scopes=tuple(
                GroupScope(group_id=gid, name=f"Group {gid}", role=role, member_entity_ids=frozenset(members))
                for gid, (role, members) in sorted((groups or {}).items())
            ),
        )

    return _make
