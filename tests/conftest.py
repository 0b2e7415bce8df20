"""
Pytest configuration and fixtures.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from typing import AsyncGenerator, Callable, Dict, List, Optional

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.core.database import Base, get_db
from backend.app.core.resilience import reply_circuit_breaker
from backend.app.core.security import Role, create_access_token
from backend.app.api.outlet import provide_reply_generator
from backend.app.services.notification_sink import NotificationSink, get_notification_sink
from backend.app.services.reply_generator import ReplyGenerator, TemplateReplyGenerator

# Register models with Base.metadata
from backend.app.models import OutletSessionORM, OutletMessageORM, OutletEscalationORM, InboxItemORM, UserORM  # noqa: F401

# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

ORG_ID = "org-test"
OTHER_ORG_ID = "org-other"
API = "/api/v1/outlet"


class RecordingSink(NotificationSink):
    """Collects notifications instead of writing inbox rows."""

    def __init__(self):
        self.sent: List[Dict] = []

    async def notify(self, org_id, user_id, kind, title, body, severity):
        self.sent.append({
            "org_id": org_id,
            "user_id": user_id,
            "kind": kind,
            "title": title,
            "body": body,
            "severity": severity,
        })


class SwitchableReplyGenerator(ReplyGenerator):
    """Template replies until a test tells it to fail."""

    name = "switchable"

    def __init__(self):
        self.inner = TemplateReplyGenerator()
        self.error: Optional[Exception] = None
        self.calls = 0

    async def generate(self, text, category, visibility):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return await self.inner.generate(text, category, visibility)


@pytest.fixture(scope="session")
def session_factory() -> async_sessionmaker[AsyncSession]:
    """Returns the session factory for testing."""
    return TestingSessionLocal


@pytest.fixture(autouse=True)
def reset_reply_breaker():
    reply_circuit_breaker.reset()
    yield
    reply_circuit_breaker.reset()


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Creates a fresh database session for a test.
    Tables are created before and dropped after each test.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestingSessionLocal() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def reply_generator() -> SwitchableReplyGenerator:
    return SwitchableReplyGenerator()


@pytest.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    sink: RecordingSink,
    reply_generator: SwitchableReplyGenerator,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client with database, reply generator and notification sink overridden.
    """
    async def override_get_db():
        try:
            yield db_session
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[provide_reply_generator] = lambda: reply_generator
    app.dependency_overrides[get_notification_sink] = lambda: sink

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[..., Dict[str, str]]:
    """Build a bearer header for a user id, role and org."""
    def _headers(user_id: str, role: Role = Role.USER, org_id: Optional[str] = ORG_ID) -> Dict[str, str]:
        token = create_access_token({"sub": user_id, "username": user_id, "role": role, "org_id": org_id})
        return {"Authorization": f"Bearer {token}"}
    return _headers
