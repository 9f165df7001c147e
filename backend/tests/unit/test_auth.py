"""Unit tests for authentication primitives."""

from datetime import UTC, datetime, timedelta

import pytest

from modhub_core.auth.api_keys import (
    compute_expiration,
    generate_api_key,
    generate_key_id,
    has_required_scope,
    hash_api_key,
    is_api_key,
)
from modhub_core.auth.github_pat import hash_pat, is_valid_pat_format, verify_pat
from modhub_core.auth.jwt import (
    JWTConfig,
    create_access_token,
    create_refresh_token,
    verify_token,
)
from modhub_core.auth.password import hash_password, verify_password


class TestPasswordHashing:
    """Test password hashing functions."""

    def test_hash_password_creates_hash(self):
        """Test that hash_password creates a bcrypt hash."""
        password = "TestPassword123"
        hashed = hash_password(password)

        assert hashed != password
        assert hashed.startswith("$2b$")

    def test_hash_password_different_hashes(self):
        """Test that same password produces different hashes (salt)."""
        assert hash_password("TestPassword123") != hash_password("TestPassword123")

    def test_verify_password(self):
        """Test verifying correct and incorrect passwords."""
        hashed = hash_password("TestPassword123")

        assert verify_password("TestPassword123", hashed) is True
        assert verify_password("WrongPassword", hashed) is False
        assert verify_password("", hashed) is False


class TestJWTTokens:
    """Test JWT token creation and verification."""

    @pytest.fixture
    def jwt_config(self):
        """Create JWT config for testing."""
        return JWTConfig(
            secret_key="test_secret_key_12345678901234567890123456789012",
            algorithm="HS256",
            access_token_expire_minutes=15,
            refresh_token_expire_days=7,
        )

    def test_verify_access_token(self, jwt_config):
        """Access tokens carry the subject and type."""
        token = create_access_token("test-user-id", jwt_config)

        token_data = verify_token(token, jwt_config)

        assert token_data is not None
        assert token_data.sub == "test-user-id"
        assert token_data.type == "access"

    def test_verify_refresh_token(self, jwt_config):
        """Refresh tokens are typed as refresh."""
        token = create_refresh_token("test-user-id", jwt_config)

        token_data = verify_token(token, jwt_config)

        assert token_data is not None
        assert token_data.type == "refresh"

    def test_verify_invalid_token(self, jwt_config):
        """Garbage and tampered tokens are rejected."""
        token = create_access_token("test-user-id", jwt_config)

        assert verify_token("invalid.token.here", jwt_config) is None
        assert verify_token(token + "tampered", jwt_config) is None

    def test_token_expiration_window(self, jwt_config):
        """Expiration is in the future and issued-at is not."""
        token_data = verify_token(create_access_token("user", jwt_config), jwt_config)

        now = datetime.now(UTC)
        assert datetime.fromtimestamp(token_data.exp, tz=UTC) > now
        assert datetime.fromtimestamp(token_data.iat, tz=UTC) <= now

    def test_verify_with_wrong_secret(self):
        """Test verifying token with wrong secret."""
        config1 = JWTConfig(secret_key="secret1" + "0" * 24)
        config2 = JWTConfig(secret_key="secret2" + "0" * 24)

        token = create_access_token("user-id", config1)

        assert verify_token(token, config2) is None


class TestApiKeys:
    """Test API key generation and scope rules."""

    def test_generate_api_key(self):
        """Keys carry the mk_ prefix and hash deterministically."""
        key, key_hash, prefix = generate_api_key()

        assert key.startswith("mk_")
        assert len(key) == 46
        assert prefix == key[:8]
        assert key_hash == hash_api_key(key)
        assert len(key_hash) == 64

    def test_generated_keys_are_unique(self):
        """Two keys never collide."""
        assert generate_api_key()[0] != generate_api_key()[0]
        assert generate_key_id().startswith("apikey_")

    def test_is_api_key(self):
        """Only mk_ credentials are API keys."""
        assert is_api_key("mk_abc") is True
        assert is_api_key("eyJhbGciOi") is False
        assert is_api_key(None) is False

    @pytest.mark.parametrize(
        ("scopes", "required", "expected"),
        [
            (["read"], "read", True),
            (["write"], "read", True),
            (["read"], "write", False),
            (["write"], "admin", False),
            (["admin"], "admin", True),
            (["admin"], "write", False),
            ([], "read", False),
            (None, "read", False),
        ],
    )
    def test_has_required_scope(self, scopes, required, expected):
        """Write implies read; admin only satisfies admin."""
        assert has_required_scope(scopes, required) is expected

    def test_compute_expiration(self):
        """Expiration choices map to fixed periods."""
        now = datetime(2024, 1, 1, tzinfo=UTC)

        assert compute_expiration("30days", now) == now + timedelta(days=30)
        assert compute_expiration("1year", now) == now + timedelta(days=365)
        assert compute_expiration("never", now) is None

    def test_compute_expiration_invalid(self):
        """Unknown choices raise."""
        with pytest.raises(ValueError, match="Invalid expiration"):
            compute_expiration("forever")


class TestGithubPat:
    """Test GitHub token format checks and hashing."""

    def test_pat_format(self):
        """Classic, OAuth and server tokens are accepted."""
        body = "A" * 36

        assert is_valid_pat_format(f"ghp_{body}")
        assert is_valid_pat_format(f"gho_{body}")
        assert is_valid_pat_format(f"ghs_{body}")
        assert not is_valid_pat_format(f"ghx_{body}")
        assert not is_valid_pat_format("ghp_short")

    def test_hash_and_verify(self):
        """A stored digest verifies only the original token."""
        token = "ghp_" + "b" * 40
        digest, salt = hash_pat(token)

        assert digest != token
        assert verify_pat(token, digest, salt)
        assert not verify_pat("ghp_" + "c" * 40, digest, salt)

    def test_salt_changes_digest(self):
        """Each save uses a fresh salt."""
        token = "ghp_" + "b" * 40

        assert hash_pat(token)[0] != hash_pat(token)[0]
