"""
Test configuration and fixtures.
Uses SQLite in-memory for fast tests. Mocks all external services.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_SECRET_KEY", "test-secret-key")

import pytest
import uuid
from unittest.mock import AsyncMock, patch
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.dialects.postgresql import JSONB, UUID
from src.config import Settings
from src.database import Base
import src.models  # noqa: F401


# Register JSONB as JSON for SQLite compatibility in tests
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


# SQLite gives a column declared UUID numeric affinity, which turns all-digit
# hex ids into floats. CHAR keeps the stored hex as text.
@compiles(UUID, "sqlite")
def _compile_uuid_sqlite(type_, compiler, **kw):
    return "CHAR(32)"


@pytest.fixture
async def db():
    """In-memory SQLite database for tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def settings():
    """Settings with no outbound credentials and no execution timeout."""
    return Settings(
        app_secret_key="test-secret-key",
        database_url="sqlite+aiosqlite:///:memory:",
        sendgrid_api_key="",
        sentry_dsn="",
        execution_timeout_seconds=0,
    )


@pytest.fixture
def mock_email():
    """Mock for async send_email - prevents real SendGrid calls in tests."""
    with patch("src.services.email.send_email", new_callable=AsyncMock) as mock:
        mock.return_value = {
            "message_id": "sg_test_123",
            "status": "sent",
            "error": None,
        }
        yield mock


@pytest.fixture
def company_id():
    return uuid.UUID("aaaaaaaa-1111-4111-8111-111111111111")


@pytest.fixture
def other_company_id():
    return uuid.UUID("bbbbbbbb-2222-4222-8222-222222222222")
