from __future__ import annotations

from sqlalchemy import event, or_, select
from sqlalchemy.orm import Session, with_loader_criteria


@event.listens_for(Session, "do_orm_execute")
def _apply_scope_filters(execute_state) -> None:
    """
    Transparent entity scoping.

    This keeps list/read query code unchanged:
        db.scalars(select(Decision)).all()
    returns only decisions on entities the caller can *see* (direct entity
    scopes plus active group members), along with platform-level decisions
    that carry no entity. Platform admins are not filtered.

    Visibility only: this layer never grants authority to act.
    """

    if not execute_state.is_select:
        return
    if execute_state.execution_options.get("include_out_of_scope", False):
        return

    ctx = execute_state.session.info.get("authz")
    if ctx is None or ctx.is_platform_admin:
        return

    # Local imports to avoid cycles.
    from decision_governance.models.decisions import Decision, EvidencePack  # noqa: WPS433
    from decision_governance.security.scope import get_visible_entity_ids  # noqa: WPS433

    visible_ids = sorted(get_visible_entity_ids(ctx))
    decision_in_scope = or_(Decision.entity_id.in_(visible_ids), Decision.entity_id.is_(None))
    visible_decision_ids = select(Decision.decision_id).where(decision_in_scope)

    execute_state.statement = execute_state.statement.options(
        with_loader_criteria(Decision, decision_in_scope, include_aliases=True),
        with_loader_criteria(EvidencePack, EvidencePack.decision_id.in_(visible_decision_ids), include_aliases=True),
    )
