"""
Standard span attributes for kvcoord.

Attribute constants used across backends, the lock client and the version
ledger so spans can be filtered consistently. Database attributes follow
OpenTelemetry semantic conventions.
"""

# =============================================================================
# Database Attributes (OpenTelemetry Semantic Conventions)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (e.g., 'sqlite', 'postgresql', 'memory')."""

ATTR_DB_OPERATION = "db.operation"
"""Database operation type (e.g., 'PUT_IF', 'DELETE_IF', 'GET')."""

# =============================================================================
# Item Attributes
# =============================================================================

ATTR_TABLE_NAME = "kvcoord.table.name"
"""Logical table name including prefix (string)."""

ATTR_PARTITION_KEY = "kvcoord.item.partition_key"
"""Partition key of the target item (string)."""

ATTR_SORT_KEY = "kvcoord.item.sort_key"
"""Sort key of the target item (string)."""

ATTR_CONDITION = "kvcoord.condition"
"""Rendered condition expression of a conditioned write (string)."""

ATTR_WRITE_OUTCOME = "kvcoord.write.outcome"
"""Backend outcome of a conditioned write ('applied' or 'condition_failed')."""

# =============================================================================
# Lock Attributes
# =============================================================================

ATTR_LOCK_NAME = "kvcoord.lock.name"
"""Logical lock name (string)."""

ATTR_LOCK_OWNER = "kvcoord.lock.owner"
"""Owner identifier of the lock client instance (string)."""

ATTR_LOCK_LEASE_MS = "kvcoord.lock.lease_ms"
"""Requested lease duration in milliseconds (integer)."""

ATTR_LOCK_ACQUIRED = "kvcoord.lock.acquired"
"""Whether the lock was granted (boolean)."""

# =============================================================================
# Versioned Entity Attributes
# =============================================================================

ATTR_ENTITY_TYPE = "kvcoord.entity.type"
"""Class name of the versioned entity (string)."""

ATTR_EXPECTED_VERSION = "kvcoord.expected_version"
"""Version the write expects to find in the store (string)."""

ATTR_VERSION = "kvcoord.version"
"""Version the write stores on success (string)."""

ATTR_WRITE_STATUS = "kvcoord.write.status"
"""Ledger result status ('success', 'conflict', 'not_found', 'backend_error')."""

__all__ = [
    "ATTR_DB_SYSTEM",
    "ATTR_DB_OPERATION",
    "ATTR_TABLE_NAME",
    "ATTR_PARTITION_KEY",
    "ATTR_SORT_KEY",
    "ATTR_CONDITION",
    "ATTR_WRITE_OUTCOME",
    "ATTR_LOCK_NAME",
    "ATTR_LOCK_OWNER",
    "ATTR_LOCK_LEASE_MS",
    "ATTR_LOCK_ACQUIRED",
    "ATTR_ENTITY_TYPE",
    "ATTR_EXPECTED_VERSION",
    "ATTR_VERSION",
    "ATTR_WRITE_STATUS",
]
