"""
kvcoord - Coordination primitives for single-table key-value stores.

This library provides:
- Lease-based distributed locks built on conditioned writes
- Optimistic concurrency for versioned entities (insert / update / upsert / delete)
- Condition expressions compiled for in-memory, SQLite and PostgreSQL backends
- OpenTelemetry tracing via an injectable Tracer
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("kvcoord")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from kvcoord.backends import (
    ConditionedDelete,
    ConditionedPut,
    InMemoryKeyValueBackend,
    KeyValueBackend,
    PostgreSQLKeyValueBackend,
    SQLiteKeyValueBackend,
    WriteOutcome,
)
from kvcoord.clock import Clock, ManualClock, SystemClock
from kvcoord.conditions import Attr, Condition, all_of, any_of
from kvcoord.config import LockConfig, TableConfig
from kvcoord.exceptions import (
    BackendUnavailableError,
    ConcurrencyConflictError,
    EntityNotFoundError,
    InvalidConditionError,
    KVCoordError,
    LockAcquisitionError,
)
from kvcoord.health import HealthCheckResult, check_health
from kvcoord.locks import KeyValueLockClient, LockHandle, LockRecord
from kvcoord.types import Item, ItemKey
from kvcoord.versioning import (
    VersionedEntity,
    VersionLedger,
    VersionPair,
    WriteResult,
    WriteStatus,
)

__all__ = [
    "__version__",
    # Backends
    "ConditionedDelete",
    "ConditionedPut",
    "InMemoryKeyValueBackend",
    "KeyValueBackend",
    "PostgreSQLKeyValueBackend",
    "SQLiteKeyValueBackend",
    "WriteOutcome",
    # Conditions
    "Attr",
    "Condition",
    "all_of",
    "any_of",
    # Configuration
    "LockConfig",
    "TableConfig",
    # Clock
    "Clock",
    "ManualClock",
    "SystemClock",
    # Exceptions
    "BackendUnavailableError",
    "ConcurrencyConflictError",
    "EntityNotFoundError",
    "InvalidConditionError",
    "KVCoordError",
    "LockAcquisitionError",
    # Health
    "HealthCheckResult",
    "check_health",
    # Locks
    "KeyValueLockClient",
    "LockHandle",
    "LockRecord",
    # Types
    "Item",
    "ItemKey",
    # Versioning
    "VersionLedger",
    "VersionPair",
    "VersionedEntity",
    "WriteResult",
    "WriteStatus",
]
