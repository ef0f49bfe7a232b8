"""
Static authority and visibility configuration.

Pure lookups with no I/O; safe to share across concurrent callers.
"""

from .matrix import (
    AUTHORITY_MATRIX,
    AuthorityMatrix,
    AuthorityRule,
    get_authority_rule,
    get_escalation_roles,
    has_authority,
    requires_dual_control,
)
from .roles import DecisionType, Role, is_group_decision_type, normalize_role
from .visibility import VISIBILITY_MATRIX, has_visibility

__all__ = [
    "AUTHORITY_MATRIX",
    "AuthorityMatrix",
    "AuthorityRule",
    "DecisionType",
    "Role",
    "VISIBILITY_MATRIX",
    "get_authority_rule",
    "get_escalation_roles",
    "has_authority",
    "has_visibility",
    "is_group_decision_type",
    "normalize_role",
    "requires_dual_control",
]
