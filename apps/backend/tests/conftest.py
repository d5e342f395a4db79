import os
from collections.abc import AsyncGenerator
from pathlib import Path


# Ensure tests run with test settings before the app and settings are imported.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("CORS_ORIGINS", '["http://localhost:3000"]')

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from main import app
from models import (
    AgentEvent,
    Base,
    ChangeEvent,
    Customer,
    Escalation,
    Order,
    SupportInteraction,
    SupportTicket,
)
from services.tools import RequestContext, ToolDeps, build_tool_registry
from services.tools.registry import ToolRegistry


# knowledge_documents needs pgvector and is left out of the SQLite schema.
SQLITE_TABLES = [
    model.__table__
    for model in (
        Customer,
        Order,
        SupportTicket,
        SupportInteraction,
        Escalation,
        ChangeEvent,
        AgentEvent,
    )
]


@pytest.fixture
def client() -> TestClient:
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest_asyncio.fixture
async def support_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine holding the support tables.

    A file (rather than ``:memory:``) lets concurrent sessions each get their
    own connection.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'support.db'}", future=True
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, tables=SQLITE_TABLES)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(
    support_engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        support_engine, expire_on_commit=False, class_=AsyncSession
    )


@pytest.fixture
def request_ctx() -> RequestContext:
    return RequestContext(app_id="voice-app", user_id="111", channel="ccc")


@pytest.fixture
def registry(session_factory: async_sessionmaker[AsyncSession]) -> ToolRegistry:
    """Support tool registry backed by SQLite, without an email notifier."""
    return build_tool_registry(
        ToolDeps(session_factory=session_factory, agent_id="test-agent")
    )
