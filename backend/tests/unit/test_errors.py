"""Unit tests for service error to HTTP mapping."""

from datetime import UTC, datetime

import pytest

from modhub_api.errors import to_http_exception
from modhub_core.exceptions import (
    AuthenticationError,
    CaptchaError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitExceededError,
)


class TestToHttpException:
    """Test to_http_exception."""

    @pytest.mark.parametrize(
        ("error", "status_code"),
        [
            (NotFoundError("Module not found"), 404),
            (PermissionDeniedError("Not allowed"), 403),
            (AuthenticationError("Invalid API key"), 401),
            (ValueError("Bad input"), 400),
        ],
    )
    def test_status_codes(self, error, status_code):
        """Each service exception maps to its status."""
        mapped = to_http_exception(error)

        assert mapped.status_code == status_code
        assert mapped.detail == str(error)

    def test_authentication_challenge(self):
        """401 responses carry a bearer challenge."""
        mapped = to_http_exception(AuthenticationError("Invalid API key"))

        assert mapped.headers == {"WWW-Authenticate": "Bearer"}

    def test_conflict_context(self):
        """Conflict context becomes top-level body fields."""
        mapped = to_http_exception(ConflictError("Already exists", existing_id="abc"))

        assert mapped.status_code == 409
        assert mapped.extra == {"existing_id": "abc"}

    def test_rate_limit_reset(self):
        """Rate limit errors expose the reset time."""
        reset_at = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

        mapped = to_http_exception(RateLimitExceededError("Too many requests", reset_at=reset_at))

        assert mapped.status_code == 429
        assert mapped.extra == {"reset_at": reset_at.isoformat()}
        assert to_http_exception(RateLimitExceededError("Too many requests")).extra == {}

    def test_captcha_flag(self):
        """Captcha failures are 400s flagged for the client."""
        mapped = to_http_exception(CaptchaError("Captcha verification failed"))

        assert mapped.status_code == 400
        assert mapped.extra == {"captcha_error": True}
