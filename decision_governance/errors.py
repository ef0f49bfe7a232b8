from __future__ import annotations


class GovernanceError(Exception):
    """
    Base class for typed failures raised by the governance core.

    Each subclass carries an HTTP-equivalent status code so the API layer can
    surface it without re-classifying. The message is always a single sentence
    naming the missing authority or the failed precondition.
    """

    status_code: int = 400
    code: str = "governance_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.code, "detail": self.message}


class NotFoundError(GovernanceError):
    """Referenced user, decision or policy does not exist."""

    status_code = 404
    code = "not_found"


class ValidationError(GovernanceError):
    """Malformed input; the caller must resubmit corrected input."""

    status_code = 422
    code = "validation_error"


class AuthorityError(GovernanceError):
    """Actor lacks the role, entity or group authority required."""

    status_code = 403
    code = "authority_error"


class InvalidStateError(GovernanceError):
    """Decision is no longer PENDING (already decided or a concurrent action won)."""

    status_code = 409
    code = "invalid_state"


class IntegrityError(GovernanceError):
    """Evidence could not be sealed; the transition was not committed."""

    status_code = 500
    code = "integrity_error"
