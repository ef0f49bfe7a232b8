from __future__ import annotations

import logging
from enum import Enum
from types import MappingProxyType

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Platform-wide role. Exactly one per user."""

    OPERATOR = "OPERATOR"
    SUPERVISOR = "SUPERVISOR"
    COMPLIANCE = "COMPLIANCE"
    PLATFORM_ADMIN = "PLATFORM_ADMIN"


class DecisionType(str, Enum):
    PAYMENT = "PAYMENT"
    LIMIT_OVERRIDE = "LIMIT_OVERRIDE"
    AML_EXCEPTION = "AML_EXCEPTION"
    POLICY_CHANGE = "POLICY_CHANGE"
    GROUP_CREATE = "GROUP_CREATE"
    GROUP_ADD_ENTITY = "GROUP_ADD_ENTITY"
    GROUP_REMOVE_ENTITY = "GROUP_REMOVE_ENTITY"
    GROUP_ROLE_ASSIGN = "GROUP_ROLE_ASSIGN"


GROUP_DECISION_PREFIX = "GROUP_"


# Legacy lowercase names are still stored on older user rows.
_ROLE_ALIASES = MappingProxyType(
    {
        "admin": Role.PLATFORM_ADMIN,
        "supervisor": Role.SUPERVISOR,
        "compliance": Role.COMPLIANCE,
        "operator": Role.OPERATOR,
        "user": Role.OPERATOR,
        "ADMIN": Role.PLATFORM_ADMIN,
        "PLATFORM_ADMIN": Role.PLATFORM_ADMIN,
        "SUPERVISOR": Role.SUPERVISOR,
        "COMPLIANCE": Role.COMPLIANCE,
        "OPERATOR": Role.OPERATOR,
    }
)

_ROLE_DISPLAY_NAMES = MappingProxyType(
    {
        Role.OPERATOR: "Operator",
        Role.SUPERVISOR: "Supervisor",
        Role.COMPLIANCE: "Compliance",
        Role.PLATFORM_ADMIN: "Admin",
    }
)

_DECISION_TYPE_DISPLAY_NAMES = MappingProxyType(
    {
        DecisionType.PAYMENT: "Payment",
        DecisionType.LIMIT_OVERRIDE: "Limit Override",
        DecisionType.AML_EXCEPTION: "AML Exception",
        DecisionType.POLICY_CHANGE: "Policy Change",
        DecisionType.GROUP_CREATE: "Group Creation",
        DecisionType.GROUP_ADD_ENTITY: "Add Entity to Group",
        DecisionType.GROUP_REMOVE_ENTITY: "Remove Entity from Group",
        DecisionType.GROUP_ROLE_ASSIGN: "Assign Group Role",
    }
)


def normalize_role(raw: str | Role | None) -> Role:
    """
    Translate an external role string into the closed `Role` enum.

    Called once at the persistence boundary. Unknown values fall back to the
    least-privileged role.
    """

    if isinstance(raw, Role):
        return raw
    if raw is None:
        return Role.OPERATOR

    role = parse_role(raw)
    if role is None:
        logger.warning("Unknown role string %r mapped to %s", raw, Role.OPERATOR.value)
        return Role.OPERATOR
    return role


def parse_role(raw: str) -> Role | None:
    """Alias-aware lookup with no fallback: "supervisor", "admin" and "SUPERVISOR" all resolve."""
    return _ROLE_ALIASES.get(raw.strip())


def coerce_role(value: str | Role) -> Role | None:
    """Strict variant used by lookups: returns None instead of guessing."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return None


def coerce_decision_type(value: str | DecisionType) -> DecisionType | None:
    if isinstance(value, DecisionType):
        return value
    try:
        return DecisionType(value)
    except ValueError:
        return None


def is_group_decision_type(decision_type: str | DecisionType) -> bool:
    value = decision_type.value if isinstance(decision_type, DecisionType) else str(decision_type)
    return value.startswith(GROUP_DECISION_PREFIX)


def format_role(role: Role) -> str:
    return _ROLE_DISPLAY_NAMES.get(role, role.value)


def format_decision_type(decision_type: DecisionType) -> str:
    return _DECISION_TYPE_DISPLAY_NAMES.get(decision_type, decision_type.value)
