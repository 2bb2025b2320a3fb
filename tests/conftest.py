"""
Shared pytest fixtures for the kvcoord tests.

This module provides:
- Clock fixtures (manual_clock)
- Backend fixtures (memory_backend, sqlite_backend)
- Configuration fixtures (table_config)
- Tracing fixtures (mock_tracer)
- Component fixtures (lock clients, version ledger)
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from kvcoord.backends import InMemoryKeyValueBackend, SQLiteKeyValueBackend
from kvcoord.clock import ManualClock
from kvcoord.config import TableConfig
from kvcoord.locks import KeyValueLockClient
from kvcoord.observability import MockTracer
from kvcoord.versioning import VersionLedger

# ============================================================================
# Clock and configuration
# ============================================================================


@pytest.fixture
def manual_clock() -> ManualClock:
    """Clock fixed at 2024-01-01T00:00:00Z until advanced."""
    return ManualClock()


@pytest.fixture
def table_config() -> TableConfig:
    """Table configuration with a test prefix."""
    return TableConfig(prefix="test-")


@pytest.fixture
def mock_tracer() -> MockTracer:
    """Tracer that records spans for assertions."""
    return MockTracer()


# ============================================================================
# Backends
# ============================================================================


@pytest.fixture
def memory_backend() -> InMemoryKeyValueBackend:
    """Fresh in-memory backend for each test."""
    return InMemoryKeyValueBackend(enable_tracing=False)


@pytest_asyncio.fixture
async def sqlite_backend() -> AsyncGenerator[SQLiteKeyValueBackend, None]:
    """In-memory SQLite backend with the schema created."""
    async with SQLiteKeyValueBackend(":memory:", wal_mode=False, enable_tracing=False) as backend:
        await backend.initialize()
        yield backend


# ============================================================================
# Components
# ============================================================================


@pytest.fixture
def lock_client_a(
    memory_backend: InMemoryKeyValueBackend,
    table_config: TableConfig,
    manual_clock: ManualClock,
) -> KeyValueLockClient:
    """Lock client for the first owner."""
    return KeyValueLockClient(
        memory_backend,
        table_config,
        clock=manual_clock,
        owner_id="owner-a",
        enable_tracing=False,
    )


@pytest.fixture
def lock_client_b(
    memory_backend: InMemoryKeyValueBackend,
    table_config: TableConfig,
    manual_clock: ManualClock,
) -> KeyValueLockClient:
    """Lock client for a second, competing owner."""
    return KeyValueLockClient(
        memory_backend,
        table_config,
        clock=manual_clock,
        owner_id="owner-b",
        enable_tracing=False,
    )


@pytest.fixture
def ledger(memory_backend: InMemoryKeyValueBackend, table_config: TableConfig) -> VersionLedger:
    """Version ledger over the in-memory backend."""
    return VersionLedger(memory_backend, table_config, enable_tracing=False)
