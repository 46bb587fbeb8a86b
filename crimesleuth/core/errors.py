"""
Error taxonomy shared by the managers and the HTTP layer.

Managers raise these; the application maps each one to the response
envelope ``{"success": false, "error": <message>}`` with the class'
``status_code``.
"""

from __future__ import annotations


class CrimeSleuthError(Exception):
    """Base class for all expected, user-visible failures."""

    status_code = 500
    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(CrimeSleuthError):
    """Missing, malformed or duplicate fields."""

    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(CrimeSleuthError):
    """Missing or invalid credentials or token."""

    status_code = 401
    default_message = "Could not validate credentials"


class AuthorizationError(CrimeSleuthError):
    """Authenticated, but the role or ownership check failed."""

    status_code = 403
    default_message = "Not authorized to perform this action"


class NotFoundError(CrimeSleuthError):
    """A referenced Case, Evidence or User does not exist."""

    status_code = 404
    default_message = "Resource not found"


class UpstreamServiceError(CrimeSleuthError):
    """The ML analysis service is unreachable or answered with an error."""

    status_code = 503
    default_message = "Upstream service unavailable"
