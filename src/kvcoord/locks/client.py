"""
Lease-based distributed locks on top of a key-value backend.

A lock is a single item in the shared table:

    PK = "lock#<name>", SK = "Lock", LockClientId = <owner>, LockExpiresOn = <epoch ms>

Acquisition is one conditioned put that succeeds when the record is missing,
already belongs to this client, or has expired. Release is one conditioned
delete that only removes a record this client still owns. There is no
background renewal: a holder that needs longer simply acquires again before
its lease runs out.

Usage:
    >>> client = KeyValueLockClient(backend)
    >>> handle = await client.try_acquire_lock("CompleteAuctions", timedelta(seconds=62))
    >>> if handle is not None:
    ...     try:
    ...         await complete_auctions()
    ...     finally:
    ...         await handle.release()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from kvcoord.backends.interface import (
    ConditionedDelete,
    ConditionedPut,
    KeyValueBackend,
    WriteOutcome,
)
from kvcoord.clock import Clock, SystemClock, as_timedelta, from_epoch_millis, to_epoch_millis
from kvcoord.conditions import Attr, Condition
from kvcoord.config import LockConfig, TableConfig
from kvcoord.exceptions import BackendUnavailableError, LockAcquisitionError
from kvcoord.identifiers import new_token
from kvcoord.observability import (
    ATTR_LOCK_ACQUIRED,
    ATTR_LOCK_LEASE_MS,
    ATTR_LOCK_NAME,
    ATTR_LOCK_OWNER,
    ATTR_TABLE_NAME,
    Tracer,
    create_tracer,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockRecord:
    """
    Snapshot of a lock record as stored in the table.

    Attributes:
        name: Logical lock name
        owner_id: Owner identifier of the client that last wrote the record
        expires_at: Absolute expiry of the lease
    """

    name: str
    owner_id: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now


class LockHandle:
    """
    A lease granted by KeyValueLockClient.

    The handle remembers the expiry it was granted and judges liveness with
    the client's clock; it never reads the store. Once the lease has run out
    or the handle has been released, it stays inactive for good.

    Supports ``async with`` to release on exit:

        >>> async with await client.try_acquire_lock("report", 30) as handle:
        ...     ...
    """

    def __init__(self, client: KeyValueLockClient, name: str, expires_at: datetime) -> None:
        self._client = client
        self._name = name
        self._expires_at = expires_at
        self._finished = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def expires_at(self) -> datetime:
        return self._expires_at

    @property
    def is_active(self) -> bool:
        if self._finished:
            return False
        if self._expires_at < self._client.clock.now():
            self._finished = True
            return False
        return True

    async def release(self) -> None:
        """
        Release the lease if it is still active.

        Calling this on an inactive handle does nothing. Backend failures are
        logged by the client and not raised; the lease then simply expires.
        """
        if not self.is_active:
            return
        self._finished = True
        await self._client._release_lock(self._name)

    async def __aenter__(self) -> LockHandle:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.release()

    def __repr__(self) -> str:
        return (
            f"LockHandle(name={self._name!r}, expires_at={self._expires_at.isoformat()}, "
            f"active={self.is_active})"
        )


class KeyValueLockClient:
    """
    Distributed lock client backed by conditioned writes.

    Each instance has its own owner identifier, so one instance must not be
    shared between unrelated owners. Renewing a lease this client still holds
    never shortens it: the stored expiry is the later of the previous grant
    and the new request.

    Example:
        >>> client = KeyValueLockClient(backend, TableConfig(prefix="dev-"))
        >>> handle = await client.try_acquire_lock("bid:auction-42", timedelta(seconds=5))
        >>> handle.is_active
        True
        >>> await handle.release()
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        table_config: TableConfig | None = None,
        lock_config: LockConfig | None = None,
        *,
        clock: Clock | None = None,
        owner_id: str | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the lock client.

        Args:
            backend: Key-value backend holding the lock records
            table_config: Table name and key schema (defaults to TableConfig())
            lock_config: Lock record layout (defaults to LockConfig())
            clock: Clock used for expiry decisions (defaults to the system clock)
            owner_id: Owner identifier; a fresh random token if not given
            tracer: Optional custom Tracer instance. If not provided, one is
                   created based on enable_tracing setting.
            enable_tracing: Whether to emit OpenTelemetry spans (default True).
                          Ignored if tracer is explicitly provided.
        """
        self._backend = backend
        self._table = table_config or TableConfig()
        self._locks = lock_config or LockConfig()
        self._clock = clock or SystemClock()
        self._owner_id = owner_id or new_token()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        # name -> expiry of the last lease this client was granted
        self._granted: dict[str, datetime] = {}
        # name -> handles given out for that lease, including renewals
        self._handles: dict[str, list[LockHandle]] = {}

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def clock(self) -> Clock:
        return self._clock

    def _acquire_condition(self, now_ms: int) -> Condition:
        hash_key = Attr(self._table.hash_key_name)
        range_key = Attr(self._table.range_key_name)
        owner = Attr(self._locks.owner_attribute)
        expiry = Attr(self._locks.expiry_attribute)
        return (hash_key.not_exists() & range_key.not_exists()) | (
            hash_key.exists()
            & range_key.exists()
            & (owner.eq(self._owner_id) | expiry.lt(now_ms))
        )

    def _release_condition(self) -> Condition:
        return (
            Attr(self._table.hash_key_name).exists()
            & Attr(self._table.range_key_name).exists()
            & Attr(self._locks.owner_attribute).eq(self._owner_id)
        )

    async def try_acquire_lock(
        self,
        name: str,
        lease_duration: timedelta | float,
    ) -> LockHandle | None:
        """
        Try once to acquire or renew the lease on ``name``.

        Args:
            name: Logical lock name
            lease_duration: Lease length as a timedelta or in seconds

        Returns:
            LockHandle if granted; None if another live owner holds the lock
            or the backend failed (the failure is logged at ERROR)

        Raises:
            ValueError: If name is empty or lease_duration is not positive
        """
        if not name:
            raise ValueError("Lock name must not be empty")
        lease = as_timedelta(lease_duration)
        if lease <= timedelta(0):
            raise ValueError(f"lease_duration must be positive, got {lease}")

        with self._tracer.span(
            "kvcoord.lock.acquire",
            {
                ATTR_LOCK_NAME: name,
                ATTR_LOCK_OWNER: self._owner_id,
                ATTR_LOCK_LEASE_MS: lease // timedelta(milliseconds=1),
                ATTR_TABLE_NAME: self._table.full_name,
            },
        ) as span:
            now = self._clock.now()
            self._prune(now)
            expires_at = now + lease
            previous = self._granted.get(name)
            if previous is not None and previous >= now:
                expires_at = max(previous, expires_at)

            key = self._locks.key_for(name)
            item = {
                **self._table.key_attributes(key),
                self._locks.owner_attribute: self._owner_id,
                self._locks.expiry_attribute: to_epoch_millis(expires_at),
            }
            request = ConditionedPut(
                table=self._table.full_name,
                key=key,
                item=item,
                condition=self._acquire_condition(to_epoch_millis(now)),
            )

            try:
                outcome = await self._backend.put_if(request)
            except BackendUnavailableError:
                logger.error("Backend unavailable while acquiring lock %s", name, exc_info=True)
                return None
            except Exception:
                logger.error("Unexpected error while acquiring lock %s", name, exc_info=True)
                return None

            acquired = outcome is WriteOutcome.APPLIED
            if span is not None:
                span.set_attribute(ATTR_LOCK_ACQUIRED, acquired)

            if not acquired:
                self._forget(name)
                logger.debug("Lock %s is held by another owner", name)
                return None

            if previous is not None and previous >= now:
                logger.debug("Renewed lock %s until %s", name, expires_at.isoformat())
            else:
                logger.debug("Acquired lock %s until %s", name, expires_at.isoformat())
            self._granted[name] = expires_at
            handle = LockHandle(self, name, expires_at)
            self._handles.setdefault(name, []).append(handle)
            return handle

    def _forget(self, name: str) -> None:
        """Drop the grant for ``name`` and deactivate every handle issued for it."""
        self._granted.pop(name, None)
        for handle in self._handles.pop(name, []):
            handle._finished = True

    def _prune(self, now: datetime) -> None:
        for name in [name for name, expires_at in self._granted.items() if expires_at < now]:
            self._forget(name)

    async def _release_lock(self, name: str) -> None:
        """Delete the lock record if this client still owns it."""
        self._forget(name)
        request = ConditionedDelete(
            table=self._table.full_name,
            key=self._locks.key_for(name),
            condition=self._release_condition(),
        )
        with self._tracer.span(
            "kvcoord.lock.release",
            {
                ATTR_LOCK_NAME: name,
                ATTR_LOCK_OWNER: self._owner_id,
                ATTR_TABLE_NAME: self._table.full_name,
            },
        ):
            try:
                outcome = await self._backend.delete_if(request)
            except Exception as e:
                logger.warning(
                    "Failed to release lock %s, it will expire on its own: %s",
                    name,
                    e,
                )
                return

            if outcome is WriteOutcome.CONDITION_FAILED:
                logger.debug("Lock %s was no longer held by this client", name)
            else:
                logger.debug("Released lock %s", name)

    async def get_lock_record(self, name: str) -> LockRecord | None:
        """
        Read the stored record for ``name``.

        Intended for diagnostics; the lock protocol itself never reads.

        Returns:
            LockRecord, or None if no record is stored
        """
        item = await self._backend.get_item(self._table.full_name, self._locks.key_for(name))
        if item is None:
            return None
        return LockRecord(
            name=name,
            owner_id=item[self._locks.owner_attribute],
            expires_at=from_epoch_millis(item[self._locks.expiry_attribute]),
        )

    @asynccontextmanager
    async def acquire(
        self,
        name: str,
        lease_duration: timedelta | float,
        *,
        timeout: float | None = None,
        retry_interval: float = 0.1,
    ) -> AsyncIterator[LockHandle]:
        """
        Acquire a lease as a context manager, polling until granted.

        The lease is released when the context exits, whether normally or due
        to an exception. Nothing renews the lease while the block runs.

        Args:
            name: Logical lock name
            lease_duration: Lease length as a timedelta or in seconds
            timeout: Maximum seconds to wait for the lock (None = wait forever)
            retry_interval: Seconds between attempts

        Yields:
            The granted LockHandle

        Raises:
            LockAcquisitionError: If the lock cannot be acquired within timeout

        Example:
            >>> async with client.acquire("bid:auction-42", 5, timeout=2.0):
            ...     await place_bid()
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None

        while True:
            handle = await self.try_acquire_lock(name, lease_duration)
            if handle is not None:
                break
            if deadline is not None and loop.time() >= deadline:
                raise LockAcquisitionError(
                    name=name,
                    reason=f"Timeout after {timeout}s",
                    timeout=timeout,
                )
            await asyncio.sleep(retry_interval)

        try:
            yield handle
        finally:
            await handle.release()


__all__ = [
    "KeyValueLockClient",
    "LockHandle",
    "LockRecord",
]
