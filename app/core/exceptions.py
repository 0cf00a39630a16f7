"""
Application Exceptions

Every failure the QR service reports to a caller carries a machine-readable
``kind``, a human-readable message and the HTTP status the API layer maps it
to. Store-layer failures are wrapped in ``InternalError`` and never retried
here; callers decide retry policy.
"""

from datetime import datetime
from typing import Any, Optional


class QRServiceError(Exception):
    """Base exception for all QR table-token errors."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the API failure payload."""
        return {
            "success": False,
            "error": self.kind,
            "message": self.message,
        }


class InvalidInputError(QRServiceError):
    """Raised when required fields are missing or malformed."""

    kind = "invalid_input"
    status_code = 400


class NotFoundError(QRServiceError):
    """Raised for an unknown restaurant or an unknown token."""

    kind = "not_found"
    status_code = 404


class TokenDeactivatedError(QRServiceError):
    """Raised when a token was explicitly revoked."""

    kind = "deactivated"
    status_code = 403

    def __init__(self, message: str = "QR code has been deactivated"):
        super().__init__(message)


class TokenExpiredError(QRServiceError):
    """Raised when a token is past its time window."""

    kind = "expired"
    status_code = 403

    def __init__(self, expires_at: datetime, message: str = "QR code has expired"):
        """
        Args:
            expires_at: The original expiration, kept for client display.
            message: Human-readable description.
        """
        self.expires_at = expires_at
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["expiresAt"] = self.expires_at.isoformat()
        return payload


class InternalError(QRServiceError):
    """Raised when the token store fails (connectivity, constraints)."""

    kind = "internal"
    status_code = 500

    def __init__(self, message: str = "Internal server error", cause: Optional[Exception] = None):
        self.cause = cause
        super().__init__(message)
