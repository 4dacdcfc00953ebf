"""Error taxonomy shared by all edge-function routes."""

from typing import Any, Optional


class AppError(Exception):
    """Base error carrying the HTTP status and message sent to the client."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class Unauthenticated(AppError):
    """Missing or invalid bearer token."""

    status_code = 401


class CredentialMissing(AppError):
    """No usable vendor key for the requested service."""

    status_code = 400


class ValidationError(AppError):
    """A required body field is missing or malformed."""

    status_code = 400


class NotFound(AppError):
    status_code = 404


class MethodNotAllowed(AppError):
    status_code = 405


class VendorError(AppError):
    """Non-success response from a third-party API."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        # Mirror the vendor status only when it is a real error status
        if status_code is None or not 400 <= status_code <= 599:
            status_code = 500
        super().__init__(message, status_code, details)


class StorageError(AppError):
    """Object storage upload or download failure."""

    status_code = 500


class InternalError(AppError):
    status_code = 500
