"""
PostgreSQL key-value backend implementation.

Production backend using SQLAlchemy's async engine (asyncpg driver). Items
are stored as JSONB; each conditioned write is a single statement whose
WHERE clause carries the compiled condition, so PostgreSQL's row locking
makes check and write atomic per item.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from kvcoord.backends._sql import PostgreSQLConditionCompiler
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
    VALUES (:table_name, :partition_key, :sort_key, CAST(:attributes AS JSONB))
    ON CONFLICT (table_name, partition_key, sort_key)
    DO UPDATE SET attributes = excluded.attributes
"""

_UPDATE = """
    UPDATE kv_items SET attributes = CAST(:attributes AS JSONB)
    WHERE table_name = :table_name
      AND partition_key = :partition_key
      AND sort_key = :sort_key
"""

_DELETE = """
    DELETE FROM kv_items
    WHERE table_name = :table_name
      AND partition_key = :partition_key
      AND sort_key = :sort_key
"""

_SELECT = """
    SELECT attributes FROM kv_items
    WHERE table_name = :table_name
      AND partition_key = :partition_key
      AND sort_key = :sort_key
"""


class PostgreSQLKeyValueBackend:
    """
    PostgreSQL implementation of KeyValueBackend.

    Accepts either an AsyncEngine or an AsyncConnection. With an engine, each
    operation runs in its own transaction; with a connection, the caller
    owns transaction management.

    Example:
        >>> from sqlalchemy.ext.asyncio import create_async_engine
        >>> engine = create_async_engine("postgresql+asyncpg://localhost/app")
        >>> backend = PostgreSQLKeyValueBackend(engine)
        >>> await backend.initialize()
        >>> lock_client = KeyValueLockClient(backend)
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the PostgreSQL backend.

        Args:
            conn: Database connection or engine
            tracer: Optional custom Tracer instance. If not provided, one is
                   created based on enable_tracing setting.
            enable_tracing: Whether to emit OpenTelemetry spans (default: True).
                          Ignored if tracer is explicitly provided.
        """
        self._conn = conn
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    @asynccontextmanager
    async def _connection(self, transactional: bool = True) -> AsyncIterator[AsyncConnection]:
        if isinstance(self._conn, AsyncEngine):
            if transactional:
                async with self._conn.begin() as connection:
                    yield connection
            else:
                async with self._conn.connect() as connection:
                    yield connection
        else:
            yield self._conn

    async def initialize(self) -> None:
        """
        Create the item table if it does not exist.

        This method is idempotent - safe to call multiple times.
        """
        try:
            async with self._connection() as conn:
                await conn.execute(text(get_schema("postgresql")))
        except (SQLAlchemyError, OSError) as e:
            raise BackendUnavailableError("initialize", "kv_items", reason=str(e)) from e
        logger.info("Initialized PostgreSQL key-value schema")

    def _span_attributes(
        self, operation: str, table: str, key: ItemKey, condition: str = ""
    ) -> dict[str, Any]:
        return {
            ATTR_DB_SYSTEM: "postgresql",
            ATTR_DB_OPERATION: operation,
            ATTR_TABLE_NAME: table,
            ATTR_PARTITION_KEY: key.partition,
            ATTR_SORT_KEY: key.sort,
            ATTR_CONDITION: condition,
        }

    @staticmethod
    def _key_params(table: str, key: ItemKey) -> dict[str, Any]:
        return {"table_name": table, "partition_key": key.partition, "sort_key": key.sort}

    async def put_if(self, request: ConditionedPut) -> WriteOutcome:
        condition = request.condition
        with self._tracer.span(
            "kvcoord.backend.put_if",
            self._span_attributes(
                "PUT_IF", request.table, request.key, condition.render() if condition else ""
            ),
        ) as span:
            params = self._key_params(request.table, request.key)
            params["attributes"] = json.dumps(request.item)

            if condition is None:
                sql = _UPSERT
            else:
                predicate, condition_params = PostgreSQLConditionCompiler().compile(condition)
                params.update(condition_params)
                if condition.evaluate(None):
                    # Absent item satisfies the condition: insert, or update if it still holds
                    sql = f"{_UPSERT} WHERE {predicate}"
                else:
                    sql = f"{_UPDATE} AND {predicate}"

            try:
                async with self._connection() as conn:
                    result = await conn.execute(text(f"{sql} RETURNING 1"), params)
                    applied = result.first() is not None
            except (SQLAlchemyError, OSError) as e:
                raise BackendUnavailableError("put_if", request.table, request.key, str(e)) from e

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
            key_params = self._key_params(request.table, request.key)
            params = dict(key_params)
            sql = _DELETE
            if condition is not None:
                predicate, condition_params = PostgreSQLConditionCompiler().compile(condition)
                params.update(condition_params)
                sql = f"{_DELETE} AND {predicate}"

            try:
                async with self._connection() as conn:
                    result = await conn.execute(text(f"{sql} RETURNING 1"), params)
                    applied = result.first() is not None
                    if not applied and (condition is None or condition.evaluate(None)):
                        # Nothing deleted; succeed if there was nothing to delete
                        result = await conn.execute(text(_SELECT), key_params)
                        applied = result.first() is None
            except (SQLAlchemyError, OSError) as e:
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
            try:
                async with self._connection(transactional=False) as conn:
                    result = await conn.execute(text(_SELECT), self._key_params(table, key))
                    row = result.first()
            except (SQLAlchemyError, OSError) as e:
                raise BackendUnavailableError("get_item", table, key, str(e)) from e

            if row is None:
                return None
            attributes = row[0]
            item: Item = attributes if isinstance(attributes, dict) else json.loads(attributes)
            return item

    async def ping(self) -> bool:
        try:
            async with self._connection(transactional=False) as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            raise BackendUnavailableError("ping", "kv_items", reason=str(e)) from e
        return True


__all__ = ["PostgreSQLKeyValueBackend"]
