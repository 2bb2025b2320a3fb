"""Library exceptions for the kvcoord package."""

from kvcoord.types import ItemKey


class KVCoordError(Exception):
    """Base exception for kvcoord library."""

    pass


class BackendUnavailableError(KVCoordError):
    """
    Raised when the key-value backend fails for a reason unrelated to a condition.

    Transport errors, driver errors and closed connections all surface as this
    exception. Condition failures never do; backends report those as
    ``WriteOutcome.CONDITION_FAILED``.

    Attributes:
        operation: Backend operation that failed (e.g. "put_if")
        table: Logical table name
        key: Key of the item involved, if any
        reason: Short description of the underlying failure
    """

    def __init__(
        self,
        operation: str,
        table: str,
        key: ItemKey | None = None,
        reason: str | None = None,
    ) -> None:
        self.operation = operation
        self.table = table
        self.key = key
        self.reason = reason
        target = f"{table}/{key}" if key is not None else table
        detail = f": {reason}" if reason else ""
        super().__init__(f"Backend unavailable during {operation} on {target}{detail}")


class ConcurrencyConflictError(KVCoordError):
    """
    Raised when a version-gated write lost the race to another writer.

    Only raised by ``WriteResult.raise_for_status()``; the ledger itself
    reports conflicts as result values.

    Attributes:
        key: Key of the entity
        expected_version: Version the writer expected to find in the store
        actual_version: Version found in the store (None if unknown)
    """

    def __init__(
        self,
        key: ItemKey,
        expected_version: str | None,
        actual_version: str | None = None,
    ) -> None:
        self.key = key
        self.expected_version = expected_version
        self.actual_version = actual_version
        if actual_version is not None:
            message = (
                f"Concurrency conflict for {key}: "
                f"expected version {expected_version!r}, found version {actual_version!r}"
            )
        else:
            message = f"Concurrency conflict for {key}: expected version {expected_version!r}"
        super().__init__(message)


class EntityNotFoundError(KVCoordError):
    """Raised when a version-gated write targets a key that no longer exists."""

    def __init__(self, key: ItemKey) -> None:
        self.key = key
        super().__init__(f"Entity not found: {key}")


class LockAcquisitionError(KVCoordError):
    """
    Raised by the polling ``acquire()`` helper when a lock cannot be obtained.

    Attributes:
        name: Lock name that could not be acquired
        reason: Description of why acquisition failed
        timeout: The timeout value if timeout was the cause
    """

    def __init__(self, name: str, reason: str, timeout: float | None = None) -> None:
        self.name = name
        self.reason = reason
        self.timeout = timeout
        super().__init__(f"Failed to acquire lock '{name}': {reason}")


class InvalidConditionError(KVCoordError, ValueError):
    """Raised when a condition expression references an invalid name or value."""

    pass
