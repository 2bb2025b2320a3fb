"""
Bidding Example

This example demonstrates the two coordination primitives on one table:
- A periodic job guarded by a named lock so only one instance runs it
- Concurrent bids resolved with version-gated updates
- Reloading and retrying after a version conflict

Run with: python examples/bidding_example.py
"""

import asyncio
import logging
from datetime import timedelta

from kvcoord import (
    InMemoryKeyValueBackend,
    ItemKey,
    KeyValueLockClient,
    TableConfig,
    VersionedEntity,
    VersionLedger,
)

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("bidding_example")

# Slightly longer than the one-minute schedule, so a crashed run blocks at most one tick
COMPLETE_AUCTIONS_LEASE = timedelta(seconds=62)


# =============================================================================
# Step 1: Define a versioned entity
# =============================================================================
# Business fields are ordinary pydantic fields. Every mutation calls
# advance_version() so the next write expects the version it was read at.


class Auction(VersionedEntity):
    auction_id: int
    title: str
    current_bid: int = 0
    high_bidder: str | None = None
    closed: bool = False

    def item_key(self) -> ItemKey:
        return ItemKey(f"auction#{self.auction_id}", "Auction")

    def place_bid(self, bidder: str, amount: int) -> None:
        if self.closed:
            raise ValueError("Auction is closed")
        if amount <= self.current_bid:
            raise ValueError(f"Bid must exceed {self.current_bid}")
        self.current_bid = amount
        self.high_bidder = bidder
        self.advance_version()

    def close(self) -> None:
        self.closed = True
        self.advance_version()


# =============================================================================
# Step 2: Place a bid, retrying on conflict
# =============================================================================


async def place_bid(ledger: VersionLedger, key: ItemKey, bidder: str, amount: int) -> bool:
    """Place a bid; reload and reapply when another bid got in first."""
    for attempt in range(1, 4):
        auction = await ledger.get(Auction, key)
        if auction is None:
            raise LookupError(f"No auction at {key}")
        try:
            auction.place_bid(bidder, amount)
        except ValueError as e:
            logger.info("%s's bid of %d rejected: %s", bidder, amount, e)
            return False

        result = await ledger.update(auction)
        if result.succeeded:
            logger.info("%s bid %d (version %s)", bidder, amount, auction.version[:8])
            return True
        if not result.conflict:
            result.raise_for_status()
        logger.info("%s lost a race on attempt %d, reloading", bidder, attempt)
    return False


# =============================================================================
# Step 3: A lock-guarded periodic job
# =============================================================================


async def complete_auctions(
    locks: KeyValueLockClient, ledger: VersionLedger, keys: list[ItemKey]
) -> None:
    """Close open auctions. Skips the run if another instance holds the lock."""
    handle = await locks.try_acquire_lock("CompleteAuctions", COMPLETE_AUCTIONS_LEASE)
    if handle is None:
        logger.info("CompleteAuctions is running elsewhere, skipping")
        return

    async with handle:
        for key in keys:
            if not handle.is_active:
                logger.warning("Lease on CompleteAuctions ran out, stopping early")
                return
            auction = await ledger.get(Auction, key)
            if auction is None or auction.closed:
                continue
            auction.close()
            result = await ledger.update(auction)
            logger.info("Closing %s: %s", key, result.status.value)


async def main() -> None:
    backend = InMemoryKeyValueBackend(enable_tracing=False)
    config = TableConfig(prefix="dev-")
    ledger = VersionLedger(backend, config, enable_tracing=False)

    auction = Auction(auction_id=42, title="Victorian mantel clock")
    await ledger.insert(auction)
    key = auction.item_key()

    # Two bidders race from the same version; one of them has to reload
    await asyncio.gather(
        place_bid(ledger, key, "alice", 100),
        place_bid(ledger, key, "bob", 150),
    )

    # Two service instances fire the scheduled job at the same moment
    instance_a = KeyValueLockClient(backend, config, owner_id="instance-a", enable_tracing=False)
    instance_b = KeyValueLockClient(backend, config, owner_id="instance-b", enable_tracing=False)
    await asyncio.gather(
        complete_auctions(instance_a, ledger, [key]),
        complete_auctions(instance_b, ledger, [key]),
    )

    final = await ledger.get(Auction, key)
    assert final is not None
    print(f"Final: {final.title} sold to {final.high_bidder} for {final.current_bid}")


if __name__ == "__main__":
    asyncio.run(main())
