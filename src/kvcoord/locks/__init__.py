"""
Distributed locks for kvcoord.

Usage:
    >>> from kvcoord.locks import KeyValueLockClient
    >>> client = KeyValueLockClient(backend)
    >>> async with client.acquire("CompleteAuctions", 62, timeout=1.0):
    ...     await complete_auctions()
"""

from kvcoord.exceptions import LockAcquisitionError
from kvcoord.locks.client import KeyValueLockClient, LockHandle, LockRecord
from kvcoord.locks.interface import DistributedLock, DistributedLockClient

__all__ = [
    "DistributedLock",
    "DistributedLockClient",
    "KeyValueLockClient",
    "LockAcquisitionError",
    "LockHandle",
    "LockRecord",
]
