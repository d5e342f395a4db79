"""Async engine and session factory for the support database.

Nothing connects until the first session is opened, so importing this module
is safe when Postgres is not up yet.
"""

from __future__ import annotations

import os

from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import get_settings


ASYNC_DRIVER = "postgresql+asyncpg"


def to_asyncpg_url(raw: str) -> URL:
    """Point a Postgres URL at asyncpg.

    Hosted Postgres hands out ``postgres://`` or psycopg URLs with
    ``sslmode=``; asyncpg only understands ``ssl=``.
    """
    url = make_url(raw)
    if url.get_backend_name() in {"postgres", "postgresql"}:
        url = url.set(drivername=ASYNC_DRIVER)
    if "sslmode" in url.query:
        mode = url.query["sslmode"]
        url = url.difference_update_query(["sslmode"]).update_query_dict({"ssl": mode})
    return url


def resolve_database_url() -> URL:
    configured = get_settings().DATABASE_URL
    if configured:
        return to_asyncpg_url(configured)

    user = os.getenv("POSTGRES_USER")
    password = os.getenv("POSTGRES_PASSWORD")
    database = os.getenv("POSTGRES_DB")
    if not (user and password and database):
        # docker-compose defaults
        user, password, database = "support_dev", "dev_password", "support_dev"
    return URL.create(
        ASYNC_DRIVER,
        username=user,
        password=password,
        host=os.getenv("POSTGRES_HOST", "localhost"),
        port=int(os.getenv("POSTGRES_PORT", "5432")),
        database=database,
    )


engine: AsyncEngine = create_async_engine(resolve_database_url(), pool_pre_ping=True)
AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def create_tables(bind: AsyncEngine | None = None) -> None:
    """Create the support tables, enabling pgvector first on Postgres."""
    from models.base import Base

    async with (bind or engine).begin() as conn:
        if conn.dialect.name == "postgresql":
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)
