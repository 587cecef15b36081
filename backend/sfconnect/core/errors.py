"""Typed failures of the authentication core.

Each error is an ``HTTPException`` so routes can simply let it propagate and
FastAPI renders ``{"detail": ...}`` with the right status. Messages are fixed
and generic; causes are logged server side, never returned.
"""

from typing import Optional

from fastapi import HTTPException


class AuthError(HTTPException):
    status_code = 400
    detail = "Request failed"

    def __init__(self, detail: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(
            status_code=status_code or type(self).status_code,
            detail=detail or type(self).detail,
        )


class InvalidCredentials(AuthError):
    """Unknown email or wrong password; the two are indistinguishable."""

    status_code = 401
    detail = "Invalid email or password"


class InvalidCode(AuthError):
    status_code = 401
    detail = "Invalid verification code"


class InvalidPassword(AuthError):
    status_code = 401
    detail = "Invalid password"


class Unauthorized(AuthError):
    status_code = 401
    detail = "Authentication required"


class Forbidden(AuthError):
    status_code = 403
    detail = "Insufficient permissions"


class EmailAlreadyRegistered(AuthError):
    status_code = 400
    detail = "User already exists"


class MfaNotSetUp(AuthError):
    status_code = 400
    detail = "MFA not set up"


class MfaNotEnabled(AuthError):
    status_code = 400
    detail = "MFA not enabled"


class UserNotFound(AuthError):
    status_code = 404
    detail = "User not found"


class StorageUnavailable(AuthError):
    status_code = 503
    detail = "Service temporarily unavailable"


class MfaMisconfigured(AuthError):
    """Stored MFA data could not be decoded."""

    status_code = 500
    detail = "MFA misconfigured for this user"
