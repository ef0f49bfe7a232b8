from __future__ import annotations

from fastapi import APIRouter, Depends

from decision_governance.authority.roles import format_role
from decision_governance.schemas.security import AuthContextOut
from decision_governance.security.context import AuthContext
from decision_governance.security.dependencies import get_auth_context
from decision_governance.security.scope import get_actionable_entity_ids, get_visible_entity_ids

router = APIRouter(prefix="/me", tags=["me"])


@router.get("/context", response_model=AuthContextOut)
def my_context(ctx: AuthContext = Depends(get_auth_context)) -> AuthContextOut:
    return AuthContextOut(
        **ctx.to_dict(),
        platform_role_label=format_role(ctx.platform_role),
        visible_entity_ids=sorted(get_visible_entity_ids(ctx)),
        actionable_entity_ids=sorted(get_actionable_entity_ids(ctx)),
    )
