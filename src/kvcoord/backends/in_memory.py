"""
In-memory implementation of the key-value backend.

Provides a simple, fast backend for testing and development.
All data is stored in memory and lost when the process terminates.
"""

import asyncio
import copy
import logging

from kvcoord.backends.interface import ConditionedDelete, ConditionedPut, WriteOutcome
from kvcoord.observability import (
    ATTR_CONDITION,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_PARTITION_KEY,
    ATTR_SORT_KEY,
    ATTR_TABLE_NAME,
    Tracer,
    create_tracer,
)
from kvcoord.types import Item, ItemKey

logger = logging.getLogger(__name__)


class InMemoryKeyValueBackend:
    """
    In-memory implementation of KeyValueBackend for testing.

    Items are kept in nested dictionaries (table -> key -> attributes). A
    single asyncio.Lock makes every condition check and the write that
    follows it one atomic step, which is the guarantee a real store gives per
    item.

    Example:
        >>> backend = InMemoryKeyValueBackend()
        >>> await backend.put_if(ConditionedPut("t", ItemKey("a", "b"), {"PK": "a", "SK": "b"}))
        <WriteOutcome.APPLIED: 'applied'>
        >>> await backend.get_item("t", ItemKey("a", "b"))
        {'PK': 'a', 'SK': 'b'}

    Note:
        - Stored items and returned items are deep copies; callers cannot
          mutate stored state through references
        - Use `clear()` method for test teardown
    """

    def __init__(
        self,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the in-memory backend.

        Args:
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._tables: dict[str, dict[ItemKey, Item]] = {}
        self._lock = asyncio.Lock()

    async def put_if(self, request: ConditionedPut) -> WriteOutcome:
        with self._tracer.span(
            "kvcoord.backend.put_if",
            {
                ATTR_DB_SYSTEM: "memory",
                ATTR_DB_OPERATION: "PUT_IF",
                ATTR_TABLE_NAME: request.table,
                ATTR_PARTITION_KEY: request.key.partition,
                ATTR_SORT_KEY: request.key.sort,
                ATTR_CONDITION: request.condition.render() if request.condition else "",
            },
        ):
            async with self._lock:
                table = self._tables.setdefault(request.table, {})
                current = table.get(request.key)

                if request.condition is not None and not request.condition.evaluate(current):
                    logger.debug("Condition failed: %s", request.describe())
                    return WriteOutcome.CONDITION_FAILED

                table[request.key] = copy.deepcopy(request.item)
                return WriteOutcome.APPLIED

    async def delete_if(self, request: ConditionedDelete) -> WriteOutcome:
        with self._tracer.span(
            "kvcoord.backend.delete_if",
            {
                ATTR_DB_SYSTEM: "memory",
                ATTR_DB_OPERATION: "DELETE_IF",
                ATTR_TABLE_NAME: request.table,
                ATTR_PARTITION_KEY: request.key.partition,
                ATTR_SORT_KEY: request.key.sort,
                ATTR_CONDITION: request.condition.render() if request.condition else "",
            },
        ):
            async with self._lock:
                table = self._tables.get(request.table, {})
                current = table.get(request.key)

                if request.condition is not None and not request.condition.evaluate(current):
                    logger.debug("Condition failed: %s", request.describe())
                    return WriteOutcome.CONDITION_FAILED

                table.pop(request.key, None)
                return WriteOutcome.APPLIED

    async def get_item(self, table: str, key: ItemKey) -> Item | None:
        with self._tracer.span(
            "kvcoord.backend.get_item",
            {
                ATTR_DB_SYSTEM: "memory",
                ATTR_DB_OPERATION: "GET",
                ATTR_TABLE_NAME: table,
                ATTR_PARTITION_KEY: key.partition,
                ATTR_SORT_KEY: key.sort,
            },
        ):
            async with self._lock:
                item = self._tables.get(table, {}).get(key)
                return copy.deepcopy(item) if item is not None else None

    async def ping(self) -> bool:
        return True

    async def clear(self) -> None:
        """Remove every item from every table."""
        async with self._lock:
            self._tables.clear()

    def __len__(self) -> int:
        """Return the number of stored items across all tables."""
        return sum(len(table) for table in self._tables.values())
