"""
Observability utilities for kvcoord.

Provides the injectable Tracer abstraction and the standard span attribute
names used by every component.

Example:
    >>> from kvcoord.observability import create_tracer
    >>>
    >>> class MyStore:
    ...     def __init__(self, enable_tracing: bool = True):
    ...         self._tracer = create_tracer(__name__, enable_tracing)
"""

from kvcoord.observability.attributes import (
    ATTR_CONDITION,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_ENTITY_TYPE,
    ATTR_EXPECTED_VERSION,
    ATTR_LOCK_ACQUIRED,
    ATTR_LOCK_LEASE_MS,
    ATTR_LOCK_NAME,
    ATTR_LOCK_OWNER,
    ATTR_PARTITION_KEY,
    ATTR_SORT_KEY,
    ATTR_TABLE_NAME,
    ATTR_VERSION,
    ATTR_WRITE_OUTCOME,
    ATTR_WRITE_STATUS,
)
from kvcoord.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes - Database
    "ATTR_DB_SYSTEM",
    "ATTR_DB_OPERATION",
    # Attributes - Item
    "ATTR_TABLE_NAME",
    "ATTR_PARTITION_KEY",
    "ATTR_SORT_KEY",
    "ATTR_CONDITION",
    "ATTR_WRITE_OUTCOME",
    # Attributes - Lock
    "ATTR_LOCK_NAME",
    "ATTR_LOCK_OWNER",
    "ATTR_LOCK_LEASE_MS",
    "ATTR_LOCK_ACQUIRED",
    # Attributes - Versioned entity
    "ATTR_ENTITY_TYPE",
    "ATTR_EXPECTED_VERSION",
    "ATTR_VERSION",
    "ATTR_WRITE_STATUS",
]
