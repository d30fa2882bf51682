# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Error taxonomy shared by every service module.

Services raise these; ``main.py`` turns them into
``{"error": <kind>, "detail": <message>}`` with the class's HTTP status.
Messages are client-visible – never put a password, hash, signing key,
TOTP secret or reset token into one.
"""

from fastapi import status


class AppError(Exception):
    kind = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationFailure(AppError):
    """Missing, malformed, tampered or expired credential."""

    kind = "authentication_failure"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid or expired token"


class DeviceMismatch(AppError):
    """Valid credential, but the account is bound to another device."""

    kind = "device_mismatch"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Account is already logged in on another device"


class AuthorizationFailure(AppError):
    kind = "authorization_failure"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class ValidationFailure(AppError):
    kind = "validation_failure"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class NotFound(AppError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class StateConflict(AppError):
    kind = "state_conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class ExternalServiceFailure(AppError):
    """A collaborator (bot check, database) was unavailable or timed out."""

    kind = "external_service_failure"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "A required service is unavailable, try again later"


class Internal(AppError):
    pass
