from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from decision_governance.authority.roles import Role, coerce_role

DECISION_INBOX = "Decision Inbox"
DECISION_ACTIONS = "Decision Actions"
PAYMENTS_LEDGER = "Payments Ledger"
EVIDENCE_PACKS = "Evidence Packs"
LIMITS_AND_OVERRIDES = "Limits & Overrides"
CONFIGURATION = "Configuration"


def _row(*visible_to: Role) -> Mapping[Role, bool]:
    return MappingProxyType({role: role in visible_to for role in Role})


# Area -> role -> visible. No hidden functionality: anything not listed is denied.
VISIBILITY_MATRIX: Mapping[str, Mapping[Role, bool]] = MappingProxyType(
    {
        DECISION_INBOX: _row(Role.OPERATOR, Role.SUPERVISOR, Role.COMPLIANCE, Role.PLATFORM_ADMIN),
        DECISION_ACTIONS: _row(Role.SUPERVISOR, Role.COMPLIANCE, Role.PLATFORM_ADMIN),
        PAYMENTS_LEDGER: _row(Role.OPERATOR, Role.SUPERVISOR, Role.COMPLIANCE, Role.PLATFORM_ADMIN),
        EVIDENCE_PACKS: _row(Role.SUPERVISOR, Role.COMPLIANCE, Role.PLATFORM_ADMIN),
        LIMITS_AND_OVERRIDES: _row(Role.COMPLIANCE, Role.PLATFORM_ADMIN),
        CONFIGURATION: _row(Role.PLATFORM_ADMIN),
    }
)


def has_visibility(role: str | Role, area: str) -> bool:
    area_visibility = VISIBILITY_MATRIX.get(area)
    if area_visibility is None:
        return False
    resolved = coerce_role(role)
    if resolved is None:
        return False
    return area_visibility.get(resolved, False)


def visibility_table() -> dict[str, dict[str, bool]]:
    """JSON-friendly copy of the matrix."""
    return {area: {role.value: allowed for role, allowed in row.items()} for area, row in VISIBILITY_MATRIX.items()}
