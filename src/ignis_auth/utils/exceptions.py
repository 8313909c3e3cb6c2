"""Custom exceptions for Ignis Patient Auth."""

from typing import Any, Dict, Optional


class IgnisException(Exception):
    """Base exception for all Ignis Patient Auth exceptions."""

    def __init__(self, message: str, code: Optional[str] = None):
        """Initialize exception.

        Args:
            message: Error message
            code: Optional error code
        """
        super().__init__(message)
        self.message = message
        self.code = code


class InvalidCredentialError(IgnisException):
    """Raised when a session credential fails verification."""

    def __init__(self, message: str = "Invalid or expired token"):
        """Initialize InvalidCredentialError."""
        super().__init__(message, "invalid_token")


class ElevationError(IgnisException):
    """Raised when a credential cannot be raised to the requested level."""

    def __init__(self, message: str):
        """Initialize ElevationError."""
        super().__init__(message, "elevation_rejected")


class FHIRClientError(IgnisException):
    """Raised when the FHIR server cannot be reached or answers with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        """Initialize FHIRClientError."""
        super().__init__(message, "fhir_error")
        self.status_code = status_code


class AccessDeniedError(IgnisException):
    """Raised by request dependencies to reject a request.

    Carries the HTTP status and JSON body that the application's exception
    handler renders.
    """

    def __init__(
        self,
        status_code: int,
        body: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ):
        """Initialize AccessDeniedError."""
        super().__init__(str(body.get("message", body.get("error"))), body.get("error"))
        self.status_code = status_code
        self.body = body
        self.headers = headers or {}


class TokenDeliveryError(IgnisException):
    """Raised when a token cannot be handed to the mail or SMS gateway."""

    def __init__(self, message: str):
        """Initialize TokenDeliveryError."""
        super().__init__(message, "delivery_failed")
