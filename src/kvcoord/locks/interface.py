"""
Protocols for the distributed lock client and the handles it returns.

Callers that only need mutual exclusion should depend on these protocols
rather than on KeyValueLockClient, so tests can substitute a fake.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol, runtime_checkable


@runtime_checkable
class DistributedLock(Protocol):
    """A granted lease on a named lock."""

    @property
    def name(self) -> str: ...

    @property
    def expires_at(self) -> datetime:
        """Expiry the holder believes it was granted."""
        ...

    @property
    def is_active(self) -> bool:
        """True while the lease has not expired and has not been released."""
        ...

    async def release(self) -> None:
        """Give the lease up early. Idempotent."""
        ...


@runtime_checkable
class DistributedLockClient(Protocol):
    """Grants short-lived, renewable, named mutual-exclusion leases."""

    @property
    def owner_id(self) -> str: ...

    async def try_acquire_lock(
        self,
        name: str,
        lease_duration: timedelta | float,
    ) -> DistributedLock | None:
        """
        Try once to acquire or renew the lease on ``name``.

        Returns:
            A handle if the lease was granted, None if another live owner holds
            it or the backend could not be reached
        """
        ...
