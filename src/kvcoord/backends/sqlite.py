"""
SQLite key-value backend implementation.

Lightweight backend using SQLite with async support via aiosqlite. Suitable
for development, tests and single-host deployments where every process
shares one database file.

Conditions are compiled to JSON1 predicates and applied in the same
statement as the write, so condition check and write are atomic per item.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any

import aiosqlite

from kvcoord.backends._sql import SQLiteConditionCompiler
from kvcoord.backends.interface import ConditionedDelete, ConditionedPut, WriteOutcome
from kvcoord.backends.schema import get_schema
from kvcoord.exceptions import BackendUnavailableError
from kvcoord.observability import (
    ATTR_CONDITION,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_PARTITION_KEY,
    ATTR_SORT_KEY,
    ATTR_TABLE_NAME,
    ATTR_WRITE_OUTCOME,
    Tracer,
    create_tracer,
)
from kvcoord.types import Item, ItemKey

logger = logging.getLogger(__name__)

_UPSERT = """
    INSERT INTO kv_items (table_name, partition_key, sort_key, attributes)
    VALUES (?, ?, ?, ?)
    ON CONFLICT (table_name, partition_key, sort_key)
    DO UPDATE SET attributes = excluded.attributes
"""

_UPDATE = """
    UPDATE kv_items SET attributes = ?
    WHERE table_name = ? AND partition_key = ? AND sort_key = ?
"""

_DELETE = """
    DELETE FROM kv_items
    WHERE table_name = ? AND partition_key = ? AND sort_key = ?
"""

_SELECT = """
    SELECT attributes FROM kv_items
    WHERE table_name = ? AND partition_key = ? AND sort_key = ?
"""


class SQLiteKeyValueBackend:
    """
    SQLite implementation of KeyValueBackend.

    Attributes:
        _database: Path to SQLite file or ':memory:' for in-memory database
        _wal_mode: Whether WAL mode is enabled
        _busy_timeout: Timeout in ms for busy database
        _connection: The aiosqlite connection (set after connect/initialize)

    Example:
        >>> async with SQLiteKeyValueBackend(":memory:") as backend:
        ...     await backend.initialize()
        ...     outcome = await backend.put_if(request)
    """

    def __init__(
        self,
        database: str,
        *,
        wal_mode: bool = True,
        busy_timeout: int = 5000,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the SQLite backend.

        Args:
            database: Path to SQLite database file or ':memory:' for in-memory
            wal_mode: If True, enable WAL mode for better concurrency (default: True)
            busy_timeout: Timeout in milliseconds when database is locked (default: 5000)
            tracer: Optional custom Tracer instance. If not provided, one is
                   created based on enable_tracing setting.
            enable_tracing: Whether to emit OpenTelemetry spans (default: True).
                          Ignored if tracer is explicitly provided.
        """
        self._database = database
        self._wal_mode = wal_mode
        self._busy_timeout = busy_timeout
        self._connection: aiosqlite.Connection | None = None
        # Serializes statement + commit pairs on the shared connection
        self._write_lock = asyncio.Lock()

        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    async def __aenter__(self) -> SQLiteKeyValueBackend:
        await self._connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    async def _connect(self) -> None:
        """
        Open the database connection and configure settings.

        This is called automatically by __aenter__ but can also be
        called directly if not using the context manager.
        """
        if self._connection is not None:
            return

        self._connection = await aiosqlite.connect(self._database)
        await self._connection.execute(f"PRAGMA busy_timeout = {self._busy_timeout}")
        if self._wal_mode:
            await self._connection.execute("PRAGMA journal_mode = WAL")

        logger.debug(
            "Connected to SQLite database: %s (wal_mode=%s, busy_timeout=%d)",
            self._database,
            self._wal_mode,
            self._busy_timeout,
        )

    async def close(self) -> None:
        """
        Close the database connection.

        Safe to call multiple times.
        """
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.debug("Closed SQLite database connection: %s", self._database)

    async def initialize(self) -> None:
        """
        Create the item table if it does not exist.

        This method is idempotent - safe to call multiple times.
        """
        if self._connection is None:
            await self._connect()

        assert self._connection is not None

        await self._connection.executescript(get_schema("sqlite"))
        await self._connection.commit()

        logger.info("Initialized SQLite key-value schema: %s", self._database)

    def _ensure_connected(self) -> aiosqlite.Connection:
        """
        Ensure we have an active connection.

        Raises:
            RuntimeError: If not connected
        """
        if self._connection is None:
            raise RuntimeError(
                "Not connected to database. Use 'async with backend:' or call 'initialize()' first."
            )
        return self._connection

    def _span_attributes(
        self, operation: str, table: str, key: ItemKey, condition: str = ""
    ) -> dict[str, Any]:
        return {
            ATTR_DB_SYSTEM: "sqlite",
            ATTR_DB_OPERATION: operation,
            ATTR_TABLE_NAME: table,
            ATTR_PARTITION_KEY: key.partition,
            ATTR_SORT_KEY: key.sort,
            ATTR_CONDITION: condition,
        }

    async def put_if(self, request: ConditionedPut) -> WriteOutcome:
        condition = request.condition
        with self._tracer.span(
            "kvcoord.backend.put_if",
            self._span_attributes(
                "PUT_IF", request.table, request.key, condition.render() if condition else ""
            ),
        ) as span:
            conn = self._ensure_connected()
            payload = json.dumps(request.item)
            key_params = (request.table, request.key.partition, request.key.sort)

            if condition is None:
                sql, params = _UPSERT, [*key_params, payload]
            else:
                predicate, condition_params = SQLiteConditionCompiler().compile(condition)
                if condition.evaluate(None):
                    # Absent item satisfies the condition: insert, or update if it still holds
                    sql = f"{_UPSERT} WHERE {predicate}"
                    params = [*key_params, payload, *condition_params]
                else:
                    sql = f"{_UPDATE} AND {predicate}"
                    params = [payload, *key_params, *condition_params]

            async with self._write_lock:
                try:
                    cursor = await conn.execute(sql, params)
                    applied = cursor.rowcount > 0
                    await conn.commit()
                except aiosqlite.Error as e:
                    with contextlib.suppress(aiosqlite.Error):
                        await conn.rollback()
                    raise BackendUnavailableError(
                        "put_if", request.table, request.key, str(e)
                    ) from e

            outcome = WriteOutcome.APPLIED if applied else WriteOutcome.CONDITION_FAILED
            if span is not None:
                span.set_attribute(ATTR_WRITE_OUTCOME, outcome.value)
            if not applied:
                logger.debug("Condition failed: %s", request.describe())
            return outcome

    async def delete_if(self, request: ConditionedDelete) -> WriteOutcome:
        condition = request.condition
        with self._tracer.span(
            "kvcoord.backend.delete_if",
            self._span_attributes(
                "DELETE_IF", request.table, request.key, condition.render() if condition else ""
            ),
        ) as span:
            conn = self._ensure_connected()
            key_params = [request.table, request.key.partition, request.key.sort]

            sql, params = _DELETE, key_params
            if condition is not None:
                predicate, condition_params = SQLiteConditionCompiler().compile(condition)
                sql = f"{_DELETE} AND {predicate}"
                params = [*key_params, *condition_params]

            async with self._write_lock:
                try:
                    cursor = await conn.execute(sql, params)
                    applied = cursor.rowcount > 0
                    if not applied and (condition is None or condition.evaluate(None)):
                        # Nothing deleted; succeed if there was nothing to delete
                        cursor = await conn.execute(_SELECT, key_params)
                        applied = await cursor.fetchone() is None
                    await conn.commit()
                except aiosqlite.Error as e:
                    with contextlib.suppress(aiosqlite.Error):
                        await conn.rollback()
                    raise BackendUnavailableError(
                        "delete_if", request.table, request.key, str(e)
                    ) from e

            outcome = WriteOutcome.APPLIED if applied else WriteOutcome.CONDITION_FAILED
            if span is not None:
                span.set_attribute(ATTR_WRITE_OUTCOME, outcome.value)
            if not applied:
                logger.debug("Condition failed: %s", request.describe())
            return outcome

    async def get_item(self, table: str, key: ItemKey) -> Item | None:
        with self._tracer.span("kvcoord.backend.get_item", self._span_attributes("GET", table, key)):
            conn = self._ensure_connected()
            try:
                cursor = await conn.execute(_SELECT, (table, key.partition, key.sort))
                row = await cursor.fetchone()
            except aiosqlite.Error as e:
                raise BackendUnavailableError("get_item", table, key, str(e)) from e

            if row is None:
                return None
            item: Item = json.loads(row[0])
            return item

    async def ping(self) -> bool:
        conn = self._ensure_connected()
        try:
            cursor = await conn.execute("SELECT 1")
            await cursor.fetchone()
        except aiosqlite.Error as e:
            raise BackendUnavailableError("ping", self._database, reason=str(e)) from e
        return True


__all__ = ["SQLiteKeyValueBackend"]
