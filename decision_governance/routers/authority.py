from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from decision_governance.authority.matrix import AUTHORITY_MATRIX
from decision_governance.authority.roles import DecisionType, Role, coerce_decision_type, parse_role
from decision_governance.authority.visibility import CONFIGURATION, visibility_table
from decision_governance.db.session import get_db
from decision_governance.errors import ValidationError
from decision_governance.schemas.decisions import AuthorityCheckOut
from decision_governance.security.decorators import require_visibility
from decision_governance.services.decisions import authority_matrix_summary, governance_history

# Read-only. Changing the matrix requires an approved POLICY_CHANGE decision.
router = APIRouter(prefix="/authority", tags=["authority"])


@router.get("/matrix")
def matrix(db: Session = Depends(get_db)) -> dict[str, Any]:
    return authority_matrix_summary(db)


@router.get("/visibility")
def visibility() -> dict[str, dict[str, bool]]:
    return visibility_table()


@router.get("/check", response_model=AuthorityCheckOut)
def check(role: str, decision_type: str) -> AuthorityCheckOut:
    # Legacy aliases ("supervisor", "admin") resolve; anything else is refused rather than guessed.
    parsed_role = parse_role(role)
    if parsed_role is None:
        raise ValidationError(f"Unknown role {role!r}; valid roles are {', '.join(r.value for r in Role)}.")
    parsed_type = coerce_decision_type(decision_type.strip().upper())
    if parsed_type is None:
        raise ValidationError(
            f"Unknown decision type {decision_type!r}; valid types are {', '.join(t.value for t in DecisionType)}."
        )

    return AuthorityCheckOut(
        role=parsed_role.value,
        decision_type=parsed_type.value,
        has_authority=AUTHORITY_MATRIX.has_authority(parsed_role, parsed_type),
        requires_dual_control=AUTHORITY_MATRIX.requires_dual_control(parsed_type),
        escalation_roles=sorted(r.value for r in AUTHORITY_MATRIX.get_escalation_roles(parsed_type)),
    )


@router.get("/governance-history")
@require_visibility(CONFIGURATION)
def history(limit: int = Query(default=10, ge=1, le=50), db: Session = Depends(get_db)) -> list[dict[str, Any]]:
    return governance_history(db, limit)
