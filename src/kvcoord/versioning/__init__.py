"""
Optimistic concurrency for entities stored in the shared table.

Usage:
    >>> from kvcoord.versioning import VersionLedger, VersionedEntity
    >>> ledger = VersionLedger(backend)
    >>> result = await ledger.insert(auction)
    >>> auction.place_bid(150)
    >>> result = await ledger.update(auction)
"""

from kvcoord.versioning.entity import VersionedEntity, VersionPair
from kvcoord.versioning.ledger import VersionLedger
from kvcoord.versioning.results import WriteResult, WriteStatus

__all__ = [
    "VersionLedger",
    "VersionPair",
    "VersionedEntity",
    "WriteResult",
    "WriteStatus",
]
