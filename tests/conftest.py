import itertools
import os
from collections import defaultdict
from collections.abc import AsyncGenerator
from datetime import datetime
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Settings refuse to load without these two; tests never touch the real database
os.environ.setdefault("DATABASE_URL", "postgresql://postgres@localhost:5432/session_join")
os.environ.setdefault("DATABASE_PASSWORD", "postgres")
os.environ.setdefault("LOG_FORMAT", "console")

from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import MetaData, insert  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool, StaticPool  # noqa: E402

from app.config import settings  # noqa: E402
from app.core.exceptions import AuthException  # noqa: E402
from app.core.redis_client import CacheManager  # noqa: E402
from app.database import get_db  # noqa: E402
from app.dependencies import get_cache_manager, get_identity_service  # noqa: E402
from app.main import app  # noqa: E402
from app.models.sessions import metadata as sessions_metadata  # noqa: E402
from app.models.sessions import sessions  # noqa: E402
from app.models.users import metadata as users_metadata  # noqa: E402
from app.services.identity_service import SIGN_IN_COMPLETE, SignInAttempt  # noqa: E402
from app.services.provisioning_service import ProvisioningService  # noqa: E402
from app.services.user_service import UserService  # noqa: E402

metadata = MetaData()
for table in sessions_metadata.tables.values():
    table.to_metadata(metadata)
for table in users_metadata.tables.values():
    table.to_metadata(metadata)

# Point TEST_DATABASE_URL at a disposable Postgres database to run against the real driver;
# otherwise an in-memory SQLite database is used.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

if TEST_DATABASE_URL.startswith("sqlite"):
    # One shared connection, otherwise every checkout sees a fresh empty database
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
else:
    if settings.database_url == TEST_DATABASE_URL:
        raise RuntimeError("TEST_DATABASE_URL must not point at the application database")
    test_engine = create_async_engine(
        TEST_DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://"),
        poolclass=NullPool,
    )

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class FakeIdentityService:
    """In-memory stand-in for the Firebase-backed identity service."""

    def __init__(self):
        self.available = True
        self.accounts: dict[str, tuple[str, str]] = {}
        self.calls: dict[str, list] = defaultdict(list)
        self.reject_sign_in = False
        self.fail_create = False
        self.incomplete_sign_in = False
        self._uids = itertools.count(1)

    def register(self, email: str, password: str) -> str:
        uid = f"uid-{next(self._uids)}"
        self.accounts[email] = (password, uid)
        return uid

    async def create_account(self, email: str, password: str, display_name: str | None = None) -> str:
        self.calls["create_account"].append(email)
        if self.fail_create:
            raise AuthException("Failed to create account: quota exceeded")
        return self.register(email, password)

    async def sign_in(self, identifier: str, password: str) -> SignInAttempt:
        self.calls["sign_in"].append(identifier)
        account = self.accounts.get(identifier)
        if self.reject_sign_in or account is None or account[0] != password:
            raise AuthException("Sign in failed: INVALID_LOGIN_CREDENTIALS")
        if self.incomplete_sign_in:
            return SignInAttempt(status="needs_second_factor")
        return SignInAttempt(status=SIGN_IN_COMPLETE, created_session_id=f"id-token-{account[1]}", uid=account[1])

    async def set_active(self, session: str) -> str:
        self.calls["set_active"].append(session)
        return f"cookie:{session}"

    async def delete_account(self, uid: str) -> bool:
        self.calls["delete_account"].append(uid)
        return True

    async def verify_session(self, session_cookie: str) -> dict:
        if not session_cookie.startswith("cookie:id-token-"):
            raise AuthException("Invalid session cookie")
        return {"uid": session_cookie.removeprefix("cookie:id-token-")}


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest.fixture
def mock_redis() -> MagicMock:
    """Redis double that always misses."""
    redis_client = MagicMock()
    redis_client.get.return_value = None
    return redis_client


@pytest.fixture
def cache_manager(mock_redis: MagicMock) -> CacheManager:
    return CacheManager(redis_client=mock_redis)


@pytest.fixture
def identity() -> FakeIdentityService:
    return FakeIdentityService()


@pytest.fixture
def user_service() -> UserService:
    return UserService()


@pytest.fixture
def provisioner(identity: FakeIdentityService, user_service: UserService) -> ProvisioningService:
    return ProvisioningService(identity, user_service, domain=settings.temp_account_domain)  # type: ignore[arg-type]


@pytest.fixture
def add_session(db_session: AsyncSession):
    """Insert a session row the way the researcher tooling would."""

    async def _add(session_id: str, status: str = "active", expires_at: datetime | None = None) -> None:
        await db_session.execute(
            insert(sessions).values(id=session_id, status=status, expires_at=expires_at)
        )
        await db_session.commit()

    return _add


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    identity: FakeIdentityService,
    cache_manager: CacheManager,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_service] = lambda: identity
    app.dependency_overrides[get_cache_manager] = lambda: cache_manager

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def session_cookie() -> str:
    """Cookie value the fake identity service accepts for uid ``uid-signed-in``."""
    return "cookie:id-token-uid-signed-in"
