from __future__ import annotations

from collections.abc import Callable

from decision_governance.authority.visibility import VISIBILITY_MATRIX


def require_visibility(area: str) -> Callable:
    """
    Decorator-style alternative to a route entry in security_config.yaml.

    This decorator does NOT perform the check itself. It attaches metadata
    that the global security dependency reads after routing.
    """

    if area not in VISIBILITY_MATRIX:
        raise ValueError(f"unknown visibility area {area!r}")

    def decorator(fn: Callable) -> Callable:
        setattr(fn, "__security_visibility_area__", area)
        return fn

    return decorator
