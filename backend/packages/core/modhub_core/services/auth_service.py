"""
Authentication service.

Handles user registration, login, and token management.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from modhub_core import get_logger
from modhub_core.auth import (
    JWTConfig,
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
    verify_token,
)
from modhub_core.exceptions import AuthenticationError
from modhub_core.schemas import AuthResponse, LoginRequest, RegisterRequest, TokenResponse, UserResponse
from modhub_database.models import User
from modhub_database.models.base import utcnow

logger = get_logger(__name__)


class AuthService:
    """Authentication service."""

    def __init__(self, session: AsyncSession, jwt_config: JWTConfig):
        """
        Initialize authentication service.

        Args:
            session: Database session.
            jwt_config: JWT configuration.
        """
        self.session = session
        self.jwt_config = jwt_config

    def _issue_tokens(self, user: User) -> TokenResponse:
        return TokenResponse(
            access_token=create_access_token(user.id, self.jwt_config),
            refresh_token=create_refresh_token(user.id, self.jwt_config),
        )

    async def register(self, request: RegisterRequest) -> AuthResponse:
        """
        Register a new user.

        Args:
            request: Registration request data.

        Returns:
            Created user with a token pair.

        Raises:
            ValueError: If email already exists.
        """
        stmt = select(User).where(User.email == request.email)
        result = await self.session.execute(stmt)
        if result.scalar_one_or_none():
            raise ValueError("Email already registered")

        user = User(
            email=request.email,
            name=request.name,
            password_hash=hash_password(request.password),
            auth_provider="local",
        )
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)

        logger.info("User registered", extra={"user_id": user.id})
        return AuthResponse(user=UserResponse.model_validate(user), tokens=self._issue_tokens(user))

    async def login(self, request: LoginRequest) -> AuthResponse:
        """
        Authenticate user and generate tokens.

        Args:
            request: Login request data.

        Returns:
            User with a token pair.

        Raises:
            AuthenticationError: If credentials are invalid.
        """
        stmt = select(User).where(User.email == request.email)
        result = await self.session.execute(stmt)
        user = result.scalar_one_or_none()

        if not user or not verify_password(request.password, user.password_hash):
            raise AuthenticationError("Invalid email or password")

        user.last_login_at = utcnow()
        await self.session.commit()
        await self.session.refresh(user)

        return AuthResponse(user=UserResponse.model_validate(user), tokens=self._issue_tokens(user))

    async def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """
        Refresh access token using refresh token.

        Args:
            refresh_token: Refresh token.

        Returns:
            New token response.

        Raises:
            AuthenticationError: If refresh token is invalid.
        """
        token_data = verify_token(refresh_token, self.jwt_config)

        if not token_data or token_data.type != "refresh":
            raise AuthenticationError("Invalid refresh token")

        user = await self.session.get(User, token_data.sub)
        if not user:
            raise AuthenticationError("User not found")

        return self._issue_tokens(user)

    async def get_user_from_token(self, access_token: str) -> User:
        """
        Resolve the user an access token belongs to.

        Args:
            access_token: Access token.

        Returns:
            Stored user.

        Raises:
            AuthenticationError: If the token is invalid or the user is gone.
        """
        token_data = verify_token(access_token, self.jwt_config)

        if not token_data or token_data.type != "access":
            raise AuthenticationError("Invalid access token")

        user = await self.session.get(User, token_data.sub)
        if not user:
            raise AuthenticationError("User not found")

        return user
