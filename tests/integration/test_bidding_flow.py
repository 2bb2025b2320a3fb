"""
End-to-end flows over a file-backed SQLite database.

Each participant opens its own connection to the same database file, the way
separate service instances would share one table.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import timedelta
from pathlib import Path

import pytest
import pytest_asyncio

from kvcoord.backends import SQLiteKeyValueBackend
from kvcoord.clock import ManualClock
from kvcoord.config import TableConfig
from kvcoord.exceptions import ConcurrencyConflictError
from kvcoord.locks import KeyValueLockClient
from kvcoord.types import ItemKey
from kvcoord.versioning import VersionLedger, WriteStatus
from tests.fixtures import Auction

AUCTION_KEY = ItemKey("auction#42", "Auction")
TABLE = TableConfig(prefix="e2e-")


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[str, None]:
    path = str(tmp_path / "marketplace.db")
    async with SQLiteKeyValueBackend(path, enable_tracing=False) as backend:
        await backend.initialize()
    yield path


@pytest_asyncio.fixture
async def instance_a(database: str) -> AsyncGenerator[SQLiteKeyValueBackend, None]:
    async with SQLiteKeyValueBackend(database, enable_tracing=False) as backend:
        yield backend


@pytest_asyncio.fixture
async def instance_b(database: str) -> AsyncGenerator[SQLiteKeyValueBackend, None]:
    async with SQLiteKeyValueBackend(database, enable_tracing=False) as backend:
        yield backend


class TestLockFlow:
    """Lock hand-over between two service instances."""

    @pytest.mark.asyncio
    async def test_lock_hand_over(
        self,
        instance_a: SQLiteKeyValueBackend,
        instance_b: SQLiteKeyValueBackend,
        manual_clock: ManualClock,
    ) -> None:
        """Test A holds the lock, B is refused, A releases and B gets it."""
        client_a = KeyValueLockClient(instance_a, TABLE, clock=manual_clock, enable_tracing=False)
        client_b = KeyValueLockClient(instance_b, TABLE, clock=manual_clock, enable_tracing=False)

        handle_a = await client_a.try_acquire_lock("bid:auction-42", timedelta(minutes=1))
        assert handle_a is not None

        manual_clock.advance(timedelta(seconds=30))
        assert await client_b.try_acquire_lock("bid:auction-42", timedelta(minutes=1)) is None

        await handle_a.release()
        handle_b = await client_b.try_acquire_lock("bid:auction-42", timedelta(minutes=1))

        assert handle_b is not None
        assert handle_b.is_active is True
        record = await client_a.get_lock_record("bid:auction-42")
        assert record is not None
        assert record.owner_id == client_b.owner_id

    @pytest.mark.asyncio
    async def test_crashed_holder_lease_lapses(
        self,
        instance_a: SQLiteKeyValueBackend,
        instance_b: SQLiteKeyValueBackend,
        manual_clock: ManualClock,
    ) -> None:
        """Test a holder that never releases blocks others only until expiry."""
        client_a = KeyValueLockClient(instance_a, TABLE, clock=manual_clock, enable_tracing=False)
        client_b = KeyValueLockClient(instance_b, TABLE, clock=manual_clock, enable_tracing=False)
        assert await client_a.try_acquire_lock("CompleteAuctions", timedelta(seconds=62))

        manual_clock.advance(timedelta(seconds=62))
        assert await client_b.try_acquire_lock("CompleteAuctions", timedelta(seconds=62)) is None

        manual_clock.advance(timedelta(milliseconds=1))
        assert await client_b.try_acquire_lock("CompleteAuctions", timedelta(seconds=62))


class TestBiddingFlow:
    """Concurrent bids on one auction from two service instances."""

    @pytest.mark.asyncio
    async def test_stale_bid_is_rejected_until_reload(
        self, instance_a: SQLiteKeyValueBackend, instance_b: SQLiteKeyValueBackend
    ) -> None:
        """Test one of two bids from the same version wins; the loser reloads and retries."""
        ledger_a = VersionLedger(instance_a, TABLE, enable_tracing=False)
        ledger_b = VersionLedger(instance_b, TABLE, enable_tracing=False)
        await ledger_a.insert(Auction(auction_id=42, title="Victorian clock"))

        auction_a = await ledger_a.get(Auction, AUCTION_KEY)
        auction_b = await ledger_b.get(Auction, AUCTION_KEY)
        assert auction_a is not None and auction_b is not None
        abc = auction_a.version
        assert auction_b.version == abc

        auction_a.place_bid("alice", 100)
        auction_b.place_bid("bob", 110)
        won = await ledger_a.update(auction_a)
        lost = await ledger_b.update(auction_b)

        assert won.status is WriteStatus.SUCCESS
        assert lost.status is WriteStatus.CONFLICT
        assert lost.expected_version == abc
        assert lost.actual_version == auction_a.version
        with pytest.raises(ConcurrencyConflictError):
            lost.raise_for_status()

        reloaded = await ledger_b.get(Auction, AUCTION_KEY)
        assert reloaded is not None
        assert reloaded.version == auction_a.version
        assert reloaded.high_bidder == "alice"
        reloaded.place_bid("bob", 110)
        retried = await ledger_b.update(reloaded)

        assert retried.succeeded
        final = await ledger_a.get(Auction, AUCTION_KEY)
        assert final is not None
        assert final.high_bidder == "bob"
        assert final.bid_count == 2

    @pytest.mark.asyncio
    async def test_bids_under_lock(
        self,
        instance_a: SQLiteKeyValueBackend,
        instance_b: SQLiteKeyValueBackend,
        manual_clock: ManualClock,
    ) -> None:
        """Test serializing bids with a lock avoids conflicts altogether."""
        ledger = VersionLedger(instance_a, TABLE, enable_tracing=False)
        await ledger.insert(Auction(auction_id=42))

        for backend, bidder, amount in ((instance_a, "alice", 100), (instance_b, "bob", 120)):
            locks = KeyValueLockClient(backend, TABLE, clock=manual_clock, enable_tracing=False)
            bids = VersionLedger(backend, TABLE, enable_tracing=False)
            async with locks.acquire("bid:auction-42", timedelta(seconds=10), timeout=1.0):
                auction = await bids.get(Auction, AUCTION_KEY)
                assert auction is not None
                auction.place_bid(bidder, amount)
                assert (await bids.update(auction)).succeeded

        final = await ledger.get(Auction, AUCTION_KEY)
        assert final is not None
        assert (final.high_bidder, final.current_bid, final.bid_count) == ("bob", 120, 2)
