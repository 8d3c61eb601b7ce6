"""Pytest configuration and shared fixtures."""

import os

# Set test environment variables before any imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_learnhub.db"
os.environ["OPENAI_API_KEY"] = "test-openai-key"
os.environ["LLM_ENABLED"] = "true"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["EMBEDDING_MODEL"] = "text-embedding-3-small"
os.environ["CONTENT_ANALYSIS_JOB_ENABLED"] = "false"

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from learnhub.llm import LLMClient, ModerationResult
from learnhub.llm.retry import RetryPolicy
from learnhub.storage import Base
from learnhub.storage.db import build_engine

EMBEDDING_MODEL = "text-embedding-3-small"


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest.fixture
async def engine(tmp_path):
    """Create a file-backed test database engine."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test_learnhub.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def session(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def llm():
    """LLM client whose external calls are AsyncMocks."""
    client = LLMClient(
        service_name="TestService",
        api_key="test-openai-key",
        completion_model="gpt-test",
        embedding_model=EMBEDDING_MODEL,
        retry_policy=RetryPolicy(max_retries=3, base_delay=0.0),
        enabled=True,
    )
    client.complete = AsyncMock(return_value="{}")
    client.create_embedding = AsyncMock(return_value=[1.0, 0.0, 0.0])
    client.moderate_content = AsyncMock(return_value=ModerationResult(flagged=False))
    return client
