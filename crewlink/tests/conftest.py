# crewlink/tests/conftest.py

import logging

import pytest
from fakeredis import aioredis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from crewlink.config import AppConfig
from crewlink.infrastructure import schemas
from crewlink.infrastructure.database import Base, create_database
from crewlink.infrastructure.presence import PresenceTracker
from crewlink.infrastructure.realtime_bus import RealtimeBus
from crewlink.infrastructure.redis_client import RedisClient
from crewlink.infrastructure.security import SecurityService
from crewlink.infrastructure.unit_of_work import UnitOfWork
from crewlink.main import Application

SERVICE_KEY = "test_service_key"


@pytest.fixture(scope="function")
def app_config():
    """
    Provide a test configuration with a shared in-memory SQLite database.
    """
    return AppConfig(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        REDIS_HOST="localhost",
        REDIS_PORT=6379,
        SECRET_KEY="test_secret_key",
        PROJECT_NAME="Test CrewLink API",
        PROJECT_VERSION="1.0.0",
        PROJECT_DESCRIPTION="Test CrewLink API",
        API_V1_STR="/api/v1",
        ALGORITHM="HS256",
        ACCESS_TOKEN_EXPIRE_MINUTES=5,
        SERVICE_API_KEY=SERVICE_KEY,
        TYPING_TTL_SECONDS=5,
    )


@pytest.fixture
def test_logger():
    logger = logging.getLogger("test_crewlink")
    logger.setLevel(logging.DEBUG)
    return logger


@pytest.fixture(scope="function")
async def mock_redis():
    """Provide a fake Redis client for testing."""
    redis = aioredis.FakeRedis(decode_responses=True)
    yield redis
    await redis.flushall()
    await redis.aclose()


@pytest.fixture
def redis_client(mock_redis, test_logger):
    client = RedisClient(host="localhost", port=6379, logger=test_logger)
    client.client = mock_redis
    return client


@pytest.fixture
def presence(redis_client, test_logger):
    return PresenceTracker(redis_client, test_logger, typing_ttl=5)


@pytest.fixture
def realtime_bus(redis_client, test_logger):
    return RealtimeBus(redis_client, test_logger)


@pytest.fixture(scope="function")
async def engine(app_config):
    """Create a SQLAlchemy engine for testing with shared in-memory SQLite."""
    engine = create_async_engine(
        app_config.DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,  # Reuse the same connection
        echo=False,
    )
    async with engine.begin() as conn:
        from crewlink.infrastructure import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(engine):
    """Provide a SQLAlchemy session for testing."""
    async_session_factory = sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False
    )
    session = async_session_factory()
    yield session
    await session.close()


@pytest.fixture(scope="function")
async def uow(db_session):
    async with UnitOfWork(db_session) as unit_of_work:
        yield unit_of_work


@pytest.fixture(scope="function")
def application(app_config, mock_redis, engine):
    application = Application(config=app_config)
    application.database = create_database(engine)
    application.redis_client.client = mock_redis
    return application


@pytest.fixture(scope="function")
def app(application):
    """Create the FastAPI app with the test database."""
    return application.create_app()


@pytest.fixture(scope="function")
async def client(app):
    """Provide an HTTP client with the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


@pytest.fixture
def security_service(app_config):
    return SecurityService(app_config)


@pytest.fixture
def make_headers(security_service):
    def _make_headers(user_id: str, display_name: str | None = None) -> dict:
        token, _ = security_service.create_access_token(user_id, display_name)
        return {"Authorization": f"Bearer {token}"}

    return _make_headers


async def _signed_in(client, make_headers, user_id, display_name):
    headers = make_headers(user_id, display_name)
    response = await client.get("/api/v1/users/me", headers=headers)
    assert response.status_code == 200, response.text
    return headers


@pytest.fixture
async def alice(client, make_headers):
    return await _signed_in(client, make_headers, "alice", "Alice Deck")


@pytest.fixture
async def bob(client, make_headers):
    return await _signed_in(client, make_headers, "bob", "Bob Galley")


@pytest.fixture
async def carol(client, make_headers):
    return await _signed_in(client, make_headers, "carol", "Carol Spa")


@pytest.fixture
def connect(client):
    """Run a full request/accept handshake and return the accept response body."""

    async def _connect(sender_headers, receiver_headers, receiver_id):
        sent = await client.post(
            "/api/v1/connections/request",
            headers=sender_headers,
            json={"receiver_id": receiver_id},
        )
        assert sent.status_code == 201, sent.text
        accepted = await client.put(
            f"/api/v1/connections/request/{sent.json()['id']}",
            headers=receiver_headers,
            json={"action": "accept"},
        )
        assert accepted.status_code == 200, accepted.text
        return accepted.json()

    return _connect


@pytest.fixture
async def crew(uow):
    """Mirror three crew members directly through the gateways."""
    for user_id, name in (("alice", "Alice Deck"), ("bob", "Bob Galley"), ("carol", "Carol Spa")):
        await uow.users.upsert_identity(schemas.Identity(user_id=user_id, display_name=name))
    await uow.commit()
    return uow
