from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from decision_governance.authority.visibility import has_visibility
from decision_governance.db.session import get_db
from decision_governance.errors import NotFoundError
from decision_governance.security.auth import extract_user_id
from decision_governance.security.config import SecurityConfig
from decision_governance.security.context import AuthContext
from decision_governance.security.resolver import resolve_auth_context

logger = logging.getLogger(__name__)


def get_security_config(request: Request) -> SecurityConfig:
    config = getattr(request.app.state, "security_config", None)
    if config is None:
        raise RuntimeError("Security config not loaded. Did app startup run?")
    return config


def get_auth_context(request: Request) -> AuthContext:
    ctx = getattr(request.state, "authz", None)
    if ctx is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return ctx


def enforce_security(
    request: Request,
    config: SecurityConfig = Depends(get_security_config),
    db: Session = Depends(get_db, use_cache=False),
) -> None:
    """
    Global security dependency (configuration-driven).

    1. Match the route rule (config file, or `@require_visibility` metadata).
    2. Resolve a fresh AuthContext for the bearer user id.
    3. Check the rule's area against the Visibility Matrix.
    4. Attach the context to `request.state.authz`; `get_db` copies it into
       `Session.info` so list queries are entity-scoped.

    Decision authority is NOT decided here; the state machine does that.
    """

    path = request.url.path
    method = request.method.upper()

    rule = config.match(path, method)

    endpoint = request.scope.get("endpoint")
    decorator_area = getattr(endpoint, "__security_visibility_area__", None) if endpoint else None

    area = decorator_area or rule.area
    auth_required = rule.auth_required or area is not None
    if not auth_required:
        return

    user_id = extract_user_id(request, config)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user id")

    try:
        ctx = resolve_auth_context(db, user_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user") from exc

    if area is not None and not has_visibility(ctx.platform_role, area):
        logger.info(
            "Visibility denied user_id=%s role=%s area=%s path=%s",
            ctx.user_id,
            ctx.platform_role.value,
            area,
            path,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Your role ({ctx.platform_role.value}) does not have visibility of {area}.",
        )

    request.state.authz = ctx
    # FastAPI may hand this same session to the endpoint, so scope it too.
    db.info["authz"] = ctx
