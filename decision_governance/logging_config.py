from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Minimal logging configuration for the governance service.

    Notes:
    - Plain stdlib logging; uvicorn already installs handlers.
    - This sets the level for the `decision_governance` package only.
    - Set `GOV_LOG_LEVEL=DEBUG` to see auth context resolution details.
    """

    normalized = level.upper()
    logging.getLogger("decision_governance").setLevel(normalized)
    logging.getLogger("decision_governance").propagate = True
