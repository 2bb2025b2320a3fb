"""
SQL schema for the key-value item table.

Every logical table shares one physical ``kv_items`` table; rows are keyed by
(table_name, partition_key, sort_key) and carry the full item as JSON.

Usage:
    from kvcoord.backends.schema import get_schema

    sqlite_sql = get_schema("sqlite")
    postgresql_sql = get_schema("postgresql")
"""

from typing import Literal

# Supported database backends
BackendName = Literal["postgresql", "sqlite"]

SQLITE_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_items (
    table_name TEXT NOT NULL,
    partition_key TEXT NOT NULL,
    sort_key TEXT NOT NULL,
    attributes TEXT NOT NULL,
    PRIMARY KEY (table_name, partition_key, sort_key)
) WITHOUT ROWID;
"""

POSTGRESQL_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_items (
    table_name TEXT NOT NULL,
    partition_key TEXT NOT NULL,
    sort_key TEXT NOT NULL,
    attributes JSONB NOT NULL,
    PRIMARY KEY (table_name, partition_key, sort_key)
);
"""


def get_schema(backend: BackendName = "postgresql") -> str:
    """
    Get the CREATE TABLE script for a backend.

    Args:
        backend: The database backend (postgresql, sqlite)

    Returns:
        SQL script; safe to run repeatedly

    Raises:
        ValueError: If backend is not supported
    """
    if backend == "sqlite":
        return SQLITE_SCHEMA
    if backend == "postgresql":
        return POSTGRESQL_SCHEMA
    raise ValueError(f"Unknown backend: {backend}. Valid backends: postgresql, sqlite")


__all__ = [
    "BackendName",
    "POSTGRESQL_SCHEMA",
    "SQLITE_SCHEMA",
    "get_schema",
]
