"""Test fixtures and configuration."""

import logging
import os
import sys
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
import structlog
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

# Set ENVIRONMENT for pydantic settings before the app modules load
os.environ["ENVIRONMENT"] = "testing"

from billwatch.database import Base  # noqa: E402
from billwatch.repositories import MemoryLedgerStore, MemoryStores  # noqa: E402


# --- Structlog Configuration for Tests ---
@pytest.fixture(autouse=True, scope="session")
def configure_structlog_for_tests():
    """Configure structlog so records reach caplog/capsys."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(),
        foreign_pre_chain=processors[:-1],
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG)

    yield

    structlog.reset_defaults()


# --- Identity ---
@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_user_id() -> UUID:
    return uuid4()


@pytest.fixture
def ledger() -> MemoryLedgerStore:
    return MemoryLedgerStore()


@pytest.fixture
def stores(ledger: MemoryLedgerStore) -> MemoryStores:
    """In-memory stores sharing the ``ledger`` fixture."""
    return MemoryStores(ledger)


# --- SQL sessions on SQLite ---
async def _sqlite_engine(url: str) -> AsyncEngine:
    """Engine with the schema created and SAVEPOINT support enabled.

    pysqlite emits its own BEGIN lazily, which breaks nested transactions;
    hand transaction control to SQLAlchemy instead.
    """
    from billwatch import models  # noqa: F401

    engine = create_async_engine(url)

    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine


@pytest_asyncio.fixture
async def sqlite_session():
    """AsyncSession on a fresh in-memory SQLite schema per test."""
    engine = await _sqlite_engine("sqlite+aiosqlite:///:memory:")
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def sqlite_file_sessions(tmp_path):
    """Session factory on a file-backed SQLite schema; each session gets its own connection."""
    engine = await _sqlite_engine(f"sqlite+aiosqlite:///{tmp_path / 'billwatch.db'}")
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


# --- HTTP client ---
@pytest.fixture
def auth_headers(user_id: UUID) -> dict[str, str]:
    from billwatch.security import create_access_token

    token = create_access_token({"sub": str(user_id)})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(stores: MemoryStores):
    """HTTP client whose requests run against the in-memory ``stores``."""
    from billwatch.deps import get_recurring_stores
    from billwatch.main import app

    async def override_stores() -> MemoryStores:
        return stores

    app.dependency_overrides[get_recurring_stores] = override_stores
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
