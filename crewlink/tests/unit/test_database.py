# crewlink/tests/unit/test_database.py
import pytest
from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from crewlink.infrastructure.database import Base, Database, build_engine


@pytest.fixture
async def in_memory_db():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    db = Database(engine=engine)
    yield db
    await engine.dispose()


@pytest.mark.asyncio
async def test_database_connect_creates_tables(in_memory_db):
    await in_memory_db.connect()

    async with in_memory_db.engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

    assert {
        "users",
        "connection_requests",
        "user_blocks",
        "chat_rooms",
        "chat_messages",
        "notifications",
        "notification_preferences",
    } <= set(tables)


@pytest.mark.asyncio
async def test_database_disconnect(in_memory_db):
    await in_memory_db.connect()

    async with in_memory_db.engine.connect() as conn:
        result = await conn.execute(text("SELECT 1"))
        assert result.scalar() == 1

    await in_memory_db.disconnect()
    assert in_memory_db.engine is not None


@pytest.mark.asyncio
async def test_database_session(in_memory_db):
    async with in_memory_db.session() as session:
        assert isinstance(session, AsyncSession)


@pytest.mark.asyncio
async def test_build_engine_creates_schema():
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    db = Database(engine=engine)
    await db.connect()

    assert "users" in Base.metadata.tables
    assert Base.metadata.naming_convention["pk"] == "pk_%(table_name)s"
    await db.disconnect()
