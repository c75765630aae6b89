"""
Error taxonomy for the two-factor and device-trust core.

Services raise these; app.main maps them to HTTP responses. Messages are
user-facing and must never contain secrets, backup codes or tokens.
"""

from datetime import datetime
from typing import Optional


class SecurityError(Exception):
    """Base class for errors raised by the security services."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(SecurityError):
    """Required configuration (e.g. ENCRYPTION_KEY) is missing. Fatal."""


class RateLimitExceeded(SecurityError):
    """Too many attempts for an (identifier, action) pair."""

    status_code = 429

    def __init__(self, message: str, reset_time: Optional[datetime] = None):
        super().__init__(message)
        self.reset_time = reset_time

    def retry_after_seconds(self, now: datetime) -> int:
        if self.reset_time is None:
            return 0
        return max(0, int((self.reset_time - now).total_seconds()))


class ValidationError(SecurityError):
    """Malformed user input (token, email, password)."""

    status_code = 400


class AuthenticationError(SecurityError):
    """Bad credentials or an invalid/expired bearer token."""

    status_code = 401


class DecryptionError(SecurityError):
    """A stored envelope could not be decrypted; treated as credential loss."""


class NotFoundError(SecurityError):
    status_code = 404
