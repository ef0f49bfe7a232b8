"""
Authority matrix: which platform role may decide which decision type.

Key ideas:
- One `AuthorityRule` per decision type, held in a read-only mapping.
- The matrix is built once at import time and shared by every caller.
- A governed change (a POLICY_CHANGE decision) produces a *new* matrix via
  `AuthorityMatrix.revised()`; an existing matrix is never mutated.
- Every lookup fails closed: unknown decision types or roles yield
  False / empty results, never an exception.

The version and fingerprint are copied into every evidence pack so it is
possible to prove which matrix was in force when a decision was taken.
"""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
import json
import logging
from types import MappingProxyType
from typing import Iterable, Mapping

from decision_governance.authority.roles import DecisionType, Role, coerce_decision_type, coerce_role, format_decision_type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorityRule:
    """Allowed roles, dual-control flag and escalation path for one decision type."""

    decision_type: DecisionType
    allowed_roles: frozenset[Role]
    dual_control: bool
    escalation_roles: frozenset[Role]
    description: str = ""
    policy_code: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "decision_type": self.decision_type.value,
            "label": format_decision_type(self.decision_type),
            "allowed_roles": sorted(r.value for r in self.allowed_roles),
            "dual_control": self.dual_control,
            "escalation_roles": sorted(r.value for r in self.escalation_roles),
            "description": self.description,
            "policy_code": self.policy_code,
        }


class AuthorityMatrix:
    """
    Immutable lookup table of `AuthorityRule` keyed by decision type.

    Usage:
        AUTHORITY_MATRIX.has_authority(Role.SUPERVISOR, DecisionType.PAYMENT)
    """

    def __init__(self, rules: Iterable[AuthorityRule], version: str, effective_from: str) -> None:
        by_type: dict[DecisionType, AuthorityRule] = {}
        for rule in rules:
            if rule.decision_type in by_type:
                raise ValueError(f"duplicate authority rule for {rule.decision_type.value}")
            by_type[rule.decision_type] = rule

        self._rules: Mapping[DecisionType, AuthorityRule] = MappingProxyType(by_type)
        self._version = version
        self._effective_from = effective_from
        self._fingerprint = _fingerprint(version, by_type.values())

    @property
    def version(self) -> str:
        return self._version

    @property
    def effective_from(self) -> str:
        return self._effective_from

    @property
    def rules(self) -> Mapping[DecisionType, AuthorityRule]:
        return self._rules

    def fingerprint(self) -> str:
        """SHA-256 over the canonical rule set; changes whenever any rule changes."""
        return self._fingerprint

    def revised(self, rules: Iterable[AuthorityRule], version: str, effective_from: str) -> AuthorityMatrix:
        """Return a new matrix for an approved POLICY_CHANGE; `self` is left untouched."""
        if version == self._version:
            raise ValueError(f"revised matrix must carry a new version (still {version!r})")
        return AuthorityMatrix(rules, version=version, effective_from=effective_from)

    # ---- Lookups ----------------------------------------------------------------------

    def get_rule(self, decision_type: str | DecisionType) -> AuthorityRule | None:
        key = coerce_decision_type(decision_type)
        if key is None:
            return None
        return self._rules.get(key)

    def has_authority(self, role: str | Role, decision_type: str | DecisionType) -> bool:
        rule = self.get_rule(decision_type)
        if rule is None:
            logger.debug("No authority rule for decision_type=%s; denying", decision_type)
            return False
        resolved = coerce_role(role)
        return resolved is not None and resolved in rule.allowed_roles

    def requires_dual_control(self, decision_type: str | DecisionType) -> bool:
        rule = self.get_rule(decision_type)
        return rule.dual_control if rule is not None else False

    def get_escalation_roles(self, decision_type: str | DecisionType) -> frozenset[Role]:
        rule = self.get_rule(decision_type)
        return rule.escalation_roles if rule is not None else frozenset()

    def describe(self) -> dict[str, object]:
        """Full matrix payload for the API."""
        return {
            "version": self._version,
            "effective_from": self._effective_from,
            "hash": self._fingerprint,
            "rules": [rule.to_dict() for rule in self._rules.values()],
        }


def _fingerprint(version: str, rules: Iterable[AuthorityRule]) -> str:
    content = json.dumps(
        {
            "version": version,
            "rules": sorted(
                (
                    {
                        "decision_type": r.decision_type.value,
                        "allowed_roles": sorted(x.value for x in r.allowed_roles),
                        "dual_control": r.dual_control,
                        "escalation_roles": sorted(x.value for x in r.escalation_roles),
                    }
                    for r in rules
                ),
                key=lambda d: d["decision_type"],
            ),
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def _rule(
    decision_type: DecisionType,
    allowed: Iterable[Role],
    *,
    dual_control: bool,
    escalation: Iterable[Role] = (),
    description: str,
    policy_code: str,
) -> AuthorityRule:
    return AuthorityRule(
        decision_type=decision_type,
        allowed_roles=frozenset(allowed),
        dual_control=dual_control,
        escalation_roles=frozenset(escalation),
        description=description,
        policy_code=policy_code,
    )


AUTHORITY_MATRIX_VERSION = "2025-02-18"
AUTHORITY_MATRIX_EFFECTIVE_FROM = "2025-02-18T00:00:00Z"

# Changes must go through a POLICY_CHANGE decision and produce a new version.
AUTHORITY_MATRIX = AuthorityMatrix(
    [
        _rule(
            DecisionType.PAYMENT,
            [Role.SUPERVISOR, Role.PLATFORM_ADMIN],
            dual_control=False,
            description="Standard and high-value payment approvals",
            policy_code="PAY-004",
        ),
        _rule(
            DecisionType.LIMIT_OVERRIDE,
            [Role.COMPLIANCE, Role.PLATFORM_ADMIN],
            dual_control=True,
            escalation=[Role.PLATFORM_ADMIN],
            description="Daily/transaction limit overrides",
            policy_code="LIM-002",
        ),
        _rule(
            DecisionType.AML_EXCEPTION,
            [Role.COMPLIANCE],
            dual_control=True,
            escalation=[Role.PLATFORM_ADMIN],
            description="AML flag exceptions and reviews",
            policy_code="AML-007",
        ),
        _rule(
            DecisionType.POLICY_CHANGE,
            [Role.PLATFORM_ADMIN],
            dual_control=True,
            description="Policy and authority matrix modifications",
            policy_code="GOV-001",
        ),
        _rule(
            DecisionType.GROUP_CREATE,
            [Role.PLATFORM_ADMIN],
            dual_control=False,
            description="Creation of a consolidation group",
            policy_code="GRP-001",
        ),
        _rule(
            DecisionType.GROUP_ADD_ENTITY,
            [Role.PLATFORM_ADMIN],
            dual_control=False,
            description="Adding an entity to a group",
            policy_code="GRP-002",
        ),
        _rule(
            DecisionType.GROUP_REMOVE_ENTITY,
            [Role.PLATFORM_ADMIN],
            dual_control=False,
            description="Removing an entity from a group",
            policy_code="GRP-003",
        ),
        _rule(
            DecisionType.GROUP_ROLE_ASSIGN,
            [Role.PLATFORM_ADMIN],
            dual_control=False,
            description="Assigning a user role on a group",
            policy_code="GRP-004",
        ),
    ],
    version=AUTHORITY_MATRIX_VERSION,
    effective_from=AUTHORITY_MATRIX_EFFECTIVE_FROM,
)


def has_authority(role: str | Role, decision_type: str | DecisionType) -> bool:
    return AUTHORITY_MATRIX.has_authority(role, decision_type)


def requires_dual_control(decision_type: str | DecisionType) -> bool:
    return AUTHORITY_MATRIX.requires_dual_control(decision_type)


def get_escalation_roles(decision_type: str | DecisionType) -> frozenset[Role]:
    return AUTHORITY_MATRIX.get_escalation_roles(decision_type)


def get_authority_rule(decision_type: str | DecisionType) -> AuthorityRule | None:
    return AUTHORITY_MATRIX.get_rule(decision_type)
