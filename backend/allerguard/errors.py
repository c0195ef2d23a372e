"""
Error taxonomy for the analysis pipeline.

Only InputValidationError and AuthError reach the client as hard errors.
UpstreamError is absorbed by the keyword fallback; PersistenceError is logged.
"""


class AllerguardError(Exception):
    """Base class for errors raised by this service."""


class InputValidationError(AllerguardError):
    """Request input is missing or malformed (HTTP 400)."""


class AuthError(AllerguardError):
    """No usable caller identity (HTTP 401)."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class UpstreamError(AllerguardError):
    """The completion service failed, timed out, or replied off-schema."""


class PersistenceError(AllerguardError):
    """Writing scan history failed."""
