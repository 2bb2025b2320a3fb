"""
Shared pytest fixtures for integration tests.

This module provides PostgreSQL fixtures. The database comes from
KVCOORD_TEST_POSTGRES_URL when set, otherwise from a testcontainers-managed
container. If neither is available, PostgreSQL tests are skipped.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import AsyncGenerator, Generator
from typing import TYPE_CHECKING

import pytest
import pytest_asyncio
from sqlalchemy import text

from kvcoord.backends import PostgreSQLKeyValueBackend

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

POSTGRES_URL_VARIABLE = "KVCOORD_TEST_POSTGRES_URL"


def is_docker_available() -> bool:
    """Check if Docker is available for running containers."""
    try:
        result = subprocess.run(
            ["docker", "info"],
            capture_output=True,
            timeout=5,
        )
        return result.returncode == 0
    except (subprocess.TimeoutExpired, OSError):
        return False


# ============================================================================
# PostgreSQL
# ============================================================================


@pytest.fixture(scope="session")
def postgres_connection_url() -> Generator[str, None, None]:
    """
    Provide an asyncpg connection URL.

    A testcontainers container is started once per session when no URL is
    configured.
    """
    configured = os.environ.get(POSTGRES_URL_VARIABLE)
    if configured:
        yield configured
        return

    postgres = pytest.importorskip("testcontainers.postgres")
    if not is_docker_available():
        pytest.skip("Docker not available or not running")

    container = postgres.PostgresContainer("postgres:15")
    container.start()
    try:
        # testcontainers returns a psycopg2 URL, convert to asyncpg
        url = container.get_connection_url()
        yield url.replace("postgresql://", "postgresql+asyncpg://").replace("psycopg2", "asyncpg")
    finally:
        container.stop()


@pytest_asyncio.fixture
async def postgres_engine(postgres_connection_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """
    Provide a SQLAlchemy async engine with the item table created and emptied.
    """
    from sqlalchemy.ext.asyncio import create_async_engine

    engine = create_async_engine(postgres_connection_url, echo=False, pool_size=5, max_overflow=10)

    backend = PostgreSQLKeyValueBackend(engine, enable_tracing=False)
    await backend.initialize()
    async with engine.begin() as conn:
        await conn.execute(text("DELETE FROM kv_items"))

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def postgres_backend(postgres_engine: AsyncEngine) -> PostgreSQLKeyValueBackend:
    """PostgreSQL backend over the shared engine."""
    return PostgreSQLKeyValueBackend(postgres_engine, enable_tracing=False)
