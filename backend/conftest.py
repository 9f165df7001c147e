"""Global pytest fixtures for testing."""

import contextlib
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import dotenv
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from modhub_api.main import app
from modhub_core.schemas import CurrentUser, UserResponse
from modhub_core.services import TurnstileResult
from modhub_database import Base
from modhub_database.models import Module, Release, User
from modhub_database.session import enable_sqlite_foreign_keys, get_session

with contextlib.suppress(OSError):
    dotenv.load_dotenv()

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class MockArqRedis:
    """Mock ArqRedis for testing."""

    def __init__(self):
        self.enqueued_jobs: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self._store: dict[str, Any] = {}
        self._ttl: dict[str, int] = {}

    async def enqueue_job(self, func_name: str, *args: Any, **kwargs: Any) -> None:
        """Mock enqueue_job that records calls without actually queuing."""
        self.enqueued_jobs.append((func_name, args, kwargs))

    async def get(self, key: str) -> Any:
        return self._store.get(key)

    async def incr(self, key: str) -> int:
        next_count = int(self._store.get(key, 0)) + 1
        self._store[key] = next_count
        return next_count

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        if key not in self._store:
            return False
        self._ttl[key] = ttl_seconds
        return True

    async def ttl(self, key: str) -> int:
        return self._ttl.get(key, -1)

    def reset(self) -> None:
        """Reset all in-memory redis state."""
        self.enqueued_jobs.clear()
        self._store.clear()
        self._ttl.clear()


class FakeTurnstile:
    """Captcha verifier that accepts any non-blank token and records calls."""

    def __init__(self):
        self.calls: list[tuple[str | None, str | None]] = []

    async def verify(self, token: str | None, remote_ip: str | None = None) -> TurnstileResult:
        self.calls.append((token, remote_ip))
        if not token or not token.strip():
            return TurnstileResult(False, "Invalid or missing Turnstile token")
        return TurnstileResult(True)


# Global mock redis instance for testing
mock_redis = MockArqRedis()


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory SQLite engine with the full schema."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    session_factory = async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_mock_redis() -> MockArqRedis:
    """Provide access to the mock redis instance for testing."""
    return mock_redis


@pytest.fixture
def fake_turnstile() -> FakeTurnstile:
    """Captcha verifier used by the test client."""
    return FakeTurnstile()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, fake_turnstile: FakeTurnstile) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database, redis and captcha overrides."""
    from modhub_api.dependencies import get_redis_pool, get_turnstile_verifier

    async def override_get_session():
        yield db_session

    async def override_get_redis_pool():
        return mock_redis

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_redis_pool] = override_get_redis_pool
    app.dependency_overrides[get_turnstile_verifier] = lambda: fake_turnstile

    # Reset mock redis state before each test
    mock_redis.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(session: AsyncSession, email: str, name: str, role: str = "user") -> User:
    from modhub_core.schemas import UserCreate
    from modhub_core.services import UserService

    user = await UserService(session).create_user(
        UserCreate(email=email, name=name, password="TestPass123", role=role)
    )
    await session.commit()
    await session.refresh(user)
    return user


def _headers_for(user: User) -> dict[str, str]:
    from modhub_api.dependencies import get_jwt_config
    from modhub_core.auth import create_access_token

    return {"Authorization": f"Bearer {create_access_token(user.id, get_jwt_config())}"}


def _as_current_user(user: User, **overrides: Any) -> CurrentUser:
    """Build the resolved caller for a stored user (session auth unless overridden)."""
    return CurrentUser.model_validate({**UserResponse.model_validate(user).model_dump(), **overrides})


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user."""
    return await _create_user(db_session, "test@example.com", "Test User")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    """Create a second regular user."""
    return await _create_user(db_session, "other@example.com", "Other User")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """Create a test admin user."""
    return await _create_user(db_session, "admin@example.com", "Admin User", role="admin")


@pytest.fixture
def auth_headers(test_user: User) -> dict[str, str]:
    """Generate auth headers for test user."""
    return _headers_for(test_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict[str, str]:
    """Generate auth headers for admin user."""
    return _headers_for(admin_user)


@pytest.fixture
def current_user(test_user: User) -> CurrentUser:
    """Resolved caller for the test user."""
    return _as_current_user(test_user)


@pytest.fixture
def current_admin(admin_user: User) -> CurrentUser:
    """Resolved caller for the admin user."""
    return _as_current_user(admin_user)


@pytest.fixture
def submission_payload() -> Callable[..., dict[str, Any]]:
    """Build a valid submission request body with camelCase keys."""

    def build(name: str = "Battery Saver", **module_overrides: Any) -> dict[str, Any]:
        module = {
            "name": name,
            "shortDescription": "Extends battery life on rooted devices",
            "description": "Tunes CPU governors and wakelocks to extend battery life on rooted Android devices.",
            "author": "droid-dev",
            "category": "performance",
            "license": "MIT",
            "isOpenSource": True,
            "sourceUrl": "https://github.com/droid-dev/battery-saver",
            "features": ["Governor tuning", "Wakelock blocker"],
            "compatibility": {"androidVersions": ["12+", "13+"], "rootMethods": ["Magisk", "KernelSU"]},
        }
        module.update(module_overrides)
        return {"module": module, "turnstileToken": "valid-token"}

    return build


@pytest.fixture
def module_factory(db_session: AsyncSession) -> Callable[..., Awaitable[Module]]:
    """Insert modules (optionally with a latest release) directly."""
    counter = {"n": 0}

    async def create(release_version: str | None = None, downloads: int = 0, **overrides: Any) -> Module:
        counter["n"] += 1
        fields: dict[str, Any] = {
            "name": f"Test Module {counter['n']}",
            "slug": f"tester-test-module-{counter['n']}",
            "description": "A module used in tests. It does many useful things for rooted devices.",
            "short_description": "A module used in tests",
            "author": "tester",
            "category": "performance",
            "license": "MIT",
            "compatibility": {"android_versions": ["12+"], "root_methods": ["Magisk"]},
            "features": ["Does things"],
            "is_published": True,
            "status": "approved",
        }
        fields.update(overrides)
        module = Module(**fields)
        db_session.add(module)
        await db_session.flush()

        if release_version is not None:
            db_session.add(
                Release(
                    module_id=module.id,
                    version=release_version,
                    download_url=f"https://github.com/tester/mod/releases/download/v{release_version}/mod.zip",
                    size="1.5 MB",
                    is_latest=True,
                    downloads=downloads,
                )
            )

        await db_session.commit()
        await db_session.refresh(module)
        return module

    return create
