"""Pytest configuration and fixtures."""
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from src.core.database import Base, get_db
from src.core.deps import get_dispatcher, get_transport
from src.core.security import create_access_token
from src.main import app
from src.models.newsletter import Newsletter, NewsletterStatus
from src.models.subscriber import Subscriber
from src.services.dispatcher import RateLimitedDispatcher
from helpers import FakeTransport, make_subscriber, no_sleep


# Test database URL - using SQLite for speed
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create async test engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def dispatcher(fake_transport: FakeTransport) -> RateLimitedDispatcher:
    """Dispatcher that never actually waits."""
    return RateLimitedDispatcher(fake_transport, min_interval=0.6, sleep=no_sleep)


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    fake_transport: FakeTransport,
    dispatcher: RateLimitedDispatcher,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with overridden database and email dependencies."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_transport] = lambda: fake_transport
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def operator_token() -> str:
    """Create access token for an operator."""
    return create_access_token(subject="operator-1")


@pytest.fixture
def auth_headers(operator_token: str) -> dict[str, str]:
    """Create authorization headers."""
    return {"Authorization": f"Bearer {operator_token}"}


@pytest_asyncio.fixture
async def test_subscriber(db_session: AsyncSession) -> Subscriber:
    """Create an active subscriber."""
    return await make_subscriber(db_session, "reader@example.com")


@pytest_asyncio.fixture
async def test_newsletter(db_session: AsyncSession) -> Newsletter:
    """Create a draft newsletter issue."""
    newsletter = Newsletter(
        subject="Weekly Digest",
        slug="weekly-digest",
        preview_text="This week in review",
        content="<h1>Hello</h1><p>News.</p>",
        status=NewsletterStatus.DRAFT,
    )
    db_session.add(newsletter)
    await db_session.commit()
    await db_session.refresh(newsletter)
    return newsletter
