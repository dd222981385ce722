"""
quizmize.errors — Error Taxonomy
=================================

Services raise these; :mod:`quizmize.api.main` translates them into HTTP
responses at the boundary.  Each class carries its own status code so
handlers never need a lookup table.
"""

from __future__ import annotations


class QuizmizeError(Exception):
    """Base class for every error surfaced to API clients."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        field_errors: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field_errors = field_errors

    def to_body(self) -> dict:
        if self.field_errors is not None:
            return {"errors": self.field_errors}
        return {"error": self.message}


class ValidationError(QuizmizeError):
    """Missing or malformed input."""

    status_code = 400


class AuthenticationError(QuizmizeError):
    """Missing, expired, or invalid session token."""

    status_code = 401


class AuthorizationError(QuizmizeError):
    """Authenticated, but lacking the membership or role required."""

    status_code = 403


class NotFoundError(QuizmizeError):
    """A referenced entity id does not resolve."""

    status_code = 404


class ConflictError(QuizmizeError):
    """Duplicate of a unique field (email, group name, membership...)."""

    status_code = 400


class InternalError(QuizmizeError):
    """Unexpected failure."""

    status_code = 500
