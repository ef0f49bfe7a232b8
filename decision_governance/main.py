from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from decision_governance.db import filters as _filters  # noqa: F401  (register SQLAlchemy filters)
from decision_governance.db.init_db import init_db
from decision_governance.errors import GovernanceError
from decision_governance.logging_config import configure_app_logging
from decision_governance.routers import authority, decisions, entities, evidence, groups, health, me, policies
from decision_governance.security.config import load_security_config
from decision_governance.security.dependencies import enforce_security
from decision_governance.settings import get_settings

logger = logging.getLogger(__name__)


async def governance_error_handler(request: Request, exc: GovernanceError) -> JSONResponse:
    # Every typed denial is returned with its one-sentence explanation.
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        app.state.security_config = load_security_config(settings.resolved_security_config_path())
        logger.info("Loaded security config: %s", settings.resolved_security_config_path())
        init_db(seed=settings.seed_demo_data)
        logger.info("Database initialized (tables ensured, seed=%s)", settings.seed_demo_data)

        yield

    # Global dependency: security applies with zero changes to route handlers.
    app = FastAPI(dependencies=[Depends(enforce_security)], lifespan=lifespan)
    app.add_exception_handler(GovernanceError, governance_error_handler)

    app.include_router(health.router)
    app.include_router(me.router)
    app.include_router(decisions.router)
    app.include_router(evidence.router)
    app.include_router(entities.router)
    app.include_router(groups.router)
    app.include_router(policies.router)
    app.include_router(authority.router)

    return app


app = create_app()
