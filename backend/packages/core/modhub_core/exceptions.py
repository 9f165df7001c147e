"""
Service-layer exceptions.

Services raise ValueError for invalid operations, as elsewhere in the
codebase. The subclasses below let routers choose the right HTTP status
without parsing messages; a plain ValueError maps to 400.
"""

from datetime import datetime
from typing import Any


class NotFoundError(ValueError):
    """Requested object does not exist (or is not visible to the caller)."""


class ConflictError(ValueError):
    """Operation conflicts with existing state (duplicate, already exists)."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class PermissionDeniedError(ValueError):
    """Caller is authenticated but not allowed to perform the operation."""


class AuthenticationError(ValueError):
    """Credentials are missing, invalid or expired."""


class RateLimitExceededError(ValueError):
    """Caller exceeded a rate limit."""

    def __init__(
        self,
        message: str,
        reset_at: datetime | None = None,
        retry_after: int | None = None,
        limit: int | None = None,
    ):
        super().__init__(message)
        self.reset_at = reset_at
        self.retry_after = retry_after
        self.limit = limit


class CaptchaError(ValueError):
    """Turnstile verification failed."""
