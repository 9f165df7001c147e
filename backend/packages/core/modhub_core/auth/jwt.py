"""
JWT token management.

Creates and verifies access and refresh tokens for session authentication.
"""

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from pydantic import BaseModel


class JWTConfig(BaseModel):
    """JWT signing configuration."""

    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    refresh_token_expire_days: int = 7


class TokenData(BaseModel):
    """Decoded token claims."""

    sub: str
    type: str
    exp: int
    iat: int


def _create_token(user_id: str, token_type: str, expires_delta: timedelta, config: JWTConfig) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "exp": int((now + expires_delta).timestamp()),
        "iat": int(now.timestamp()),
    }
    return jwt.encode(payload, config.secret_key, algorithm=config.algorithm)


def create_access_token(user_id: str, config: JWTConfig) -> str:
    """
    Create a short-lived access token.

    Args:
        user_id: Subject user ID.
        config: JWT configuration.

    Returns:
        Encoded JWT.
    """
    return _create_token(
        user_id, "access", timedelta(minutes=config.access_token_expire_minutes), config
    )


def create_refresh_token(user_id: str, config: JWTConfig) -> str:
    """
    Create a long-lived refresh token.

    Args:
        user_id: Subject user ID.
        config: JWT configuration.

    Returns:
        Encoded JWT.
    """
    return _create_token(user_id, "refresh", timedelta(days=config.refresh_token_expire_days), config)


def verify_token(token: str, config: JWTConfig) -> TokenData | None:
    """
    Decode and verify a token.

    Args:
        token: Encoded JWT.
        config: JWT configuration.

    Returns:
        Token claims, or None if the token is invalid or expired.
    """
    try:
        payload = jwt.decode(token, config.secret_key, algorithms=[config.algorithm])
        return TokenData(**payload)
    except (JWTError, ValueError, TypeError):
        return None
