"""Error kinds raised by the account lifecycle and its collaborators.

Each error carries a human-readable ``message`` for the caller and an optional
``error`` with internal detail (driver text, SMTP failure) that is only ever
attached as auxiliary information.
"""
from typing import Optional


class AuthServiceError(Exception):
    """Base class for every error the service reports to callers"""
    status_code = 500
    message = "Internal server error"
    headers: Optional[dict] = None

    def __init__(self, message: Optional[str] = None, error: Optional[str] = None):
        self.message = message or self.message
        self.error = error
        super().__init__(self.message)


class ValidationError(AuthServiceError):
    """400 Missing or malformed input"""
    status_code = 400
    message = "Please provide all required fields"


class ConflictError(AuthServiceError):
    """409 Duplicate registration or resend on a verified account"""
    status_code = 409
    message = "Resource already exists"


class NotFoundError(AuthServiceError):
    """404 No account for the given email"""
    status_code = 404
    message = "User not found"


class InvalidCredentialError(AuthServiceError):
    """Submitted secret did not match"""
    status_code = 401
    message = "Invalid credentials"


class InvalidCredentialsError(InvalidCredentialError):
    """401 Unknown email or wrong password (deliberately indistinguishable)"""


class InvalidOTPError(InvalidCredentialError):
    """400 Submitted OTP does not match the pending one, or none is pending"""
    status_code = 400
    message = "Invalid OTP"


class ExpiredOTPError(AuthServiceError):
    """400 Pending OTP is past its expiration"""
    status_code = 400
    message = "OTP has expired. Please request a new one."


class UnauthorizedError(AuthServiceError):
    """401 Unverified login, or a bad/expired bearer token"""
    status_code = 401
    message = "Not authenticated"
    headers = {"WWW-Authenticate": "Bearer"}


class DeliveryError(AuthServiceError):
    """500 Notification dispatch failed"""
    status_code = 500
    message = "Email could not be sent"

    def __init__(self, message: Optional[str] = None, error: Optional[str] = None, rolled_back: bool = True):
        super().__init__(message, error)
        self.rolled_back = rolled_back


class StoreError(AuthServiceError):
    """500 Persistence failure, surfaced as a generic server error"""
    status_code = 500
    message = "Server error"


class ConcurrentUpdateError(StoreError):
    """Account changed between read and write"""
    message = "Account was modified concurrently. Please try again."


def invalid_credentials() -> InvalidCredentialsError:
    """The one error returned for both unknown-email and wrong-password logins."""
    return InvalidCredentialsError("Invalid credentials")
