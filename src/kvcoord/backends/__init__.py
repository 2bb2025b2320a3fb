"""
Key-value backends for kvcoord.

- InMemoryKeyValueBackend: dictionaries guarded by an asyncio.Lock (tests, development)
- SQLiteKeyValueBackend: aiosqlite, items stored as JSON text
- PostgreSQLKeyValueBackend: SQLAlchemy async engine, items stored as JSONB
"""

from kvcoord.backends.in_memory import InMemoryKeyValueBackend
from kvcoord.backends.interface import (
    ConditionedDelete,
    ConditionedPut,
    KeyValueBackend,
    WriteOutcome,
)
from kvcoord.backends.postgresql import PostgreSQLKeyValueBackend
from kvcoord.backends.schema import get_schema
from kvcoord.backends.sqlite import SQLiteKeyValueBackend

__all__ = [
    "ConditionedDelete",
    "ConditionedPut",
    "InMemoryKeyValueBackend",
    "KeyValueBackend",
    "PostgreSQLKeyValueBackend",
    "SQLiteKeyValueBackend",
    "WriteOutcome",
    "get_schema",
]
